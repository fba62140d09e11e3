import unittest

from oblige.type import TypeDeclaration, Interval, NumberLit
from oblige.lang import parse, ParseError
from oblige.registry import Registry, DuplicateNameError, load
from oblige.resolve import resolve

from .testcase import TestCase


class TestRegistry(TestCase):

    def test_declare_and_lookup(self):
        reg = Registry()
        reg.parse("int: 0 ... 2^32\nlist A: [A]")
        self.assertIn("int", reg)
        self.assertEqual(reg.lookup("list").arity, 1)
        self.assertIsNone(reg.lookup("float"))
        self.assertEqual(reg.names(), ["int", "list"])
        self.assertIn("string", reg.names(include_builtins=True))

    def test_redeclaring_identically_is_harmless(self):
        reg = Registry()
        reg.parse("int: 0 ... 10")
        reg.parse("int: 0 ... 10")
        self.assertEqual(len(reg.names()), 1)

    def test_duplicate_name(self):
        reg = Registry()
        reg.parse("int: 0 ... 10")
        self.assertRaises(DuplicateNameError, reg.parse, "int: 0 ... 11")
        self.assertRaises(DuplicateNameError, reg.parse,
            "a: void\na: 0 ... 1")

    def test_builtins_cannot_be_redeclared(self):
        reg = Registry()
        self.assertRaises(DuplicateNameError, reg.parse, "string: [any]")

    def test_failed_batch_leaves_registry_unchanged(self):
        reg = Registry()
        reg.parse("int: 0 ... 10")
        self.assertRaises(DuplicateNameError, reg.parse,
            "small: 0 ... 5\nint: 0 ... 20")
        self.assertNotIn("small", reg)

        self.assertRaises(ParseError, reg.parse, "big: 0 ... 100\nbad: [")
        self.assertNotIn("big", reg)

    def test_forward_references(self):
        reg = Registry()
        reg.parse("ints: list int\nlist A: [A]\nint: 0 ... 10")
        self.assertTrue(resolve(reg, "ints").items)

    def test_load_function(self):
        reg = Registry()
        decl = TypeDeclaration("unit", [], Interval(NumberLit(0),
            NumberLit(1)))
        load(reg, [decl])
        self.assertIn(decl, reg)
        self.assertEqual(reg.lookup("unit"), parse("unit: 0 ... 1")[0])

    def test_prelude(self):
        self.assertNotIn("number", Registry())
        reg = Registry(prelude=True)
        self.assertIn("number", reg)
        self.assertIn("boolean", reg)

    def test_memo_is_forgotten_on_declare(self):
        reg = Registry()
        reg.parse("int: 0 ... 10")
        first = resolve(reg, "int")
        self.assertIs(resolve(reg, "int"), first)
        self.assertIsNotNone(reg.memoized(("Named", "int")))

        reg.parse("float: -infinity ... +infinity")
        self.assertIsNone(reg.memoized(("Named", "int")))

    def test_duplicate_name_message(self):
        reg = Registry()
        reg.parse("int: 0 ... 10")
        with self.assertRaises(DuplicateNameError) as cm:
            reg.parse("\nint: 0 ... 11")
        self.assertEqual(cm.exception.position, (2, 1))
        self.assertIn("int: 0 ... 10", str(cm.exception))


if __name__ == '__main__':
    unittest.main()
