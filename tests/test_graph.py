"""
Tests for describing registries as RDF vocabularies.
"""

from __future__ import annotations
import unittest

from rdflib import Literal

from oblige.namespace import OB, EX, RDF, RDFS
from oblige.registry import Registry
from oblige.graph import TypeGraph

from .testcase import TestCase


def vocabulary(source: str, **kwargs) -> TypeGraph:
    reg = Registry()
    reg.parse(source)
    g = TypeGraph(reg, **kwargs)
    g.add_vocabulary()
    return g


class TestTypeGraph(TestCase):

    def test_declarations(self):
        g = vocabulary("int: 0 ... 2^32\nlist A: [A]")
        self.assertIn((EX["int"], RDF.type, OB.Type), g)
        self.assertIn((EX["int"], RDFS.label, Literal("int")), g)
        self.assertIn((EX["int"], OB.text, Literal("0 ... 2^32")), g)
        self.assertIn((EX["list"], OB.arity, Literal(1)), g)
        params = g.value(EX["list"], OB.parameters)
        self.assertEqual(list(g.get_list(params)), [Literal("A")])
        self.assertNotIn((EX["string"], RDF.type, OB.Type), g)

    def test_taxonomy_is_transitively_reduced(self):
        g = vocabulary("""
            number: -infinity ... +infinity
            int: 0 ... 2^32
            small: 0 ... 10
            text: string
        """)
        self.assertIn((EX["small"], RDFS.subClassOf, EX["int"]), g)
        self.assertIn((EX["int"], RDFS.subClassOf, EX["number"]), g)
        self.assertNotIn((EX["small"], RDFS.subClassOf, EX["number"]), g)
        self.assertNotIn((EX["text"], RDFS.subClassOf, EX["number"]), g)

    def test_taxonomy_skips_failures(self):
        g = vocabulary("a: a\nb: 0 ... 1\nc: 0 ... 2")
        self.assertIn((EX["b"], RDFS.subClassOf, EX["c"]), g)
        self.assertIn((EX["a"], RDF.type, OB.Type), g)

    def test_delegation_order(self):
        g = vocabulary("""
            first: { x: string }
            second: { y: string }
            obj: { z: string } <| second, first, void
        """)
        targets = g.value(EX["obj"], OB.delegatesTo)
        self.assertEqual(list(g.get_list(targets)),
            [EX["second"], EX["first"], Literal("void")])
        self.assertEqual(g.value(EX["obj"], OB.base),
            Literal("{ z: string }"))

    def test_constructors(self):
        g = vocabulary("bool: false | true")
        node = EX["bool.true"]
        self.assertIn((node, RDF.type, OB.Constructor), g)
        self.assertIn((node, OB.constructorOf, EX["bool"]), g)
        self.assertIn((node, OB.arity, Literal(0)), g)

    def test_minimal(self):
        g = vocabulary("bool: false | true\nsmall: 0 ... 1\nint: 0 ... 2",
            minimal=True)
        self.assertIn((EX["bool"], RDF.type, OB.Type), g)
        self.assertIsNone(g.value(EX["bool"], RDFS.label))
        self.assertNotIn((EX["bool.true"], RDF.type, OB.Constructor), g)
        self.assertNotIn((EX["small"], RDFS.subClassOf, EX["int"]), g)


if __name__ == '__main__':
    unittest.main()
