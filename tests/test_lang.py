import unittest

from oblige.type import (NumberLit, Exponential, Interval, Unit, List,
    Record, Function, Parameter, Suffix, Delegation, Predicate, Tag,
    TaggedUnion, Union, Complement, Reference, TypeVariable, TypeDeclaration)
from oblige.lang import (parse, parse_type, ParseError, UnexpectedToken,
    BracketMismatch, EmptyParse, MalformedNumber, DuplicateFieldError,
    VariadicPositionError, ReservedWordError)

from .testcase import TestCase


class TestParser(TestCase):

    def test_interval_round_trip(self):
        decls = parse("int: 0 ... 2^32")
        self.assertEqual(decls, [TypeDeclaration("int", [], Interval(
            NumberLit(0), Exponential(NumberLit(2), NumberLit(32))))])
        self.assertEqual(str(decls[0]), "int: 0 ... 2^32")
        self.assertEqual(parse(str(decls[0])), decls)

    def test_round_trips(self):
        self.assertRoundTrip("""
            int: 0 ... 2^32
            bool: false | true
            list A: [A]
            pair A B: #[A, B]
            point: { x: number, y: number }
            slice: [A], number, number? -> [A]
            printf: string, any... -> void
            maybe A: nothing | just A
            tree A: leaf | node (tree A) (tree A)
            odd: int \\ 0 ... 1
            both: int + string
            obj: { name: string } <| point, pair int int
            bounded A: A: number => [A]
            curried: number -> number -> number
            split: string -> string, string
            nested: (a + b) \\ c
            items: [(a <| b), c]
        """)

    def test_numbers(self):
        inf = float("inf")
        self.assertEqual(parse_type("-infinity ... +infinity"),
            Interval(NumberLit(-inf), NumberLit(inf)))
        self.assertEqual(parse_type("0.5"), NumberLit(0.5))
        self.assertEqual(parse_type("-3"), NumberLit(-3))
        self.assertTrue(parse_type("nan").nan)
        self.assertEqual(str(NumberLit(1e20)), "100000000000000000000.0")
        self.assertEqual(parse_type(str(NumberLit(1e20))), NumberLit(1e20))

    def test_sign_or_union(self):
        self.assertEqual(parse_type("1 + -1"),
            Union(NumberLit(1), NumberLit(-1)))
        self.assertEqual(parse_type("1 +1"),
            Union(NumberLit(1), NumberLit(1)))

    def test_complement_binds_tighter_than_union(self):
        self.assertEqual(parse_type("a + b \\ c"),
            Union(Reference("a"),
                Complement(Reference("b"), Reference("c"))))
        self.assertEqual(parse_type("a \\ b \\ c"),
            Complement(Complement(Reference("a"), Reference("b")),
                Reference("c")))

    def test_variadic_or_interval(self):
        self.assertEqual(parse_type("0 ... 1"),
            Interval(NumberLit(0), NumberLit(1)))
        self.assertEqual(parse_type("1... -> void"),
            Function([Parameter(NumberLit(1), Suffix.VARIADIC)], [Unit()]))

    def test_bar_is_tagged_only_at_top(self):
        [decl] = parse("b: false | true")
        self.assertEqual(decl.body,
            TaggedUnion([Tag("false"), Tag("true")]))
        self.assertEqual(parse_type("a | b"),
            Union(Reference("a"), Reference("b")))
        [decl] = parse("n: 0 ... 1 | 5")
        self.assertIsInstance(decl.body, Union)

    def test_bar_in_function_inputs_is_a_union(self):
        either = Union(Reference("int"), Reference("string"))
        [decl] = parse("f: int | string -> int")
        self.assertEqual(decl.body, Function([either], [Reference("int")]))
        [decl] = parse("g: int | string, int -> int")
        self.assertEqual(decl.body.inputs[0].type, either)
        [decl] = parse("h: int, int | string -> int")
        self.assertEqual(decl.body.inputs[1].type, either)
        [decl] = parse("r: { f: int | string -> int }")
        self.assertEqual(decl.body.fields["f"].inputs[0].type, either)

    def test_repeated_alternatives_in_function_inputs(self):
        [decl] = parse("f: a | a -> b")
        self.assertEqual(decl.body.inputs[0].type,
            Union(Reference("a"), Reference("a")))

    def test_tags_take_fields(self):
        [decl] = parse("tree A: leaf | node (tree A) (tree A)")
        A = TypeVariable("A")
        self.assertEqual(decl.parameters, (A,))
        self.assertEqual(decl.body.tag("node"),
            Tag("node", [Reference("tree", [A]), Reference("tree", [A])]))

    def test_predicate_heads(self):
        A, B = TypeVariable("A"), TypeVariable("B")
        self.assertEqual(parse_type("A: number => [A]"),
            Predicate(Reference("number"), List([A]), [A]))
        self.assertEqual(parse_type("A, B: number => #[A, B]").variables,
            (A, B))

        implicit = parse_type("number => [A]")
        self.assertEqual(implicit.variables, ())
        self.assertEqual(implicit.quantified(), [A])

    def test_function_arity(self):
        f = parse_type("[A], number, number? -> [A]")
        self.assertEqual(f.arity(), (2, 3))
        self.assertFalse(f.variadic)
        g = parse_type("string, any... -> void")
        self.assertEqual(g.arity(), (1, None))
        self.assertEqual(g.parameter(5).type, Reference("any"))
        self.assertIsNone(f.parameter(3))

    def test_multiple_outputs(self):
        f = parse_type("string -> string, number")
        self.assertEqual(f.outputs, (Reference("string"), Reference("number")))

    def test_commas_separate_declarations(self):
        decls = parse("a: 0 ... 1, b: 2 ... 3")
        self.assertEqual([d.name for d in decls], ["a", "b"])

    def test_delegation_targets(self):
        [decl] = parse("obj: { name: string } <| point, pair int int")
        self.assertIsInstance(decl.body, Delegation)
        self.assertEqual(decl.body.targets, (Reference("point"),
            Reference("pair", [Reference("int"), Reference("int")])))

    def test_line_continuation(self):
        decls = parse("a: 0 ... 1\n    + 2 ... 3\nb: void")
        self.assertEqual(len(decls), 2)
        self.assertIsInstance(decls[0].body, Union)
        self.assertEqual(decls[1].body, Unit())

    def test_record_fields_on_lines(self):
        [decl] = parse("p: {\n    x: number\n    y: number\n}")
        self.assertEqual(decl.body, Record({
            "x": Reference("number"), "y": Reference("number")}))

    def test_comments(self):
        decls = parse("// numbers\nint: 0 ... 10 // ten\n")
        self.assertEqual(decls, [TypeDeclaration("int", [],
            Interval(NumberLit(0), NumberLit(10)))])

    def test_empty(self):
        self.assertEqual(parse(""), [])
        self.assertRaises(EmptyParse, parse_type, "  ")

    def test_duplicate_field(self):
        self.assertRaises(DuplicateFieldError, parse,
            "r: { x: number, x: string }")

    def test_duplicate_tag(self):
        with self.assertRaises(DuplicateFieldError) as cm:
            parse("b: yes | no | yes")
        self.assertEqual(cm.exception.kind, "tag")

    def test_error_position(self):
        with self.assertRaises(DuplicateFieldError) as cm:
            parse("a: number\nb: { x: number, x: string }")
        self.assertEqual(cm.exception.position, (2, 17))

        with self.assertRaises(BracketMismatch) as cm2:
            parse("a: [number")
        self.assertEqual(cm2.exception.position, (1, 4))

    def test_bracket_mismatch(self):
        self.assertRaises(BracketMismatch, parse, "a: (number]")
        self.assertRaises(BracketMismatch, parse, "a: number)")

    def test_malformed_number(self):
        self.assertRaises(MalformedNumber, parse, "a: 1.2.3")
        self.assertRaises(MalformedNumber, parse, "a: 12abc")
        self.assertRaises(MalformedNumber, parse, "a: 1.")
        self.assertRaises(MalformedNumber, parse, "a: - 1")

    def test_reserved_words(self):
        self.assertRaises(ReservedWordError, parse, "void: number")
        self.assertRaises(ReservedWordError, parse, "nan: number")

    def test_variadic_must_be_last(self):
        self.assertRaises(VariadicPositionError, parse,
            "f: number..., string -> void")

    def test_unexpected_token(self):
        self.assertRaises(UnexpectedToken, parse, "a: ->")
        self.assertRaises(UnexpectedToken, parse, "a 0: number")
        self.assertRaises(UnexpectedToken, parse, "a: number;")

    def test_parse_errors_share_a_base(self):
        for source in ("a: [", "a: 1.2.3", "void: void", "r: {x: a, x: b}"):
            self.assertRaises(ParseError, parse, source)


if __name__ == '__main__':
    unittest.main()
