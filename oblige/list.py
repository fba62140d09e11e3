# cf. <https://rdflib.readthedocs.io/en/stable/_modules/rdflib/collection.html>

from __future__ import annotations

from rdflib import Graph, RDF
from rdflib.term import BNode, Node
from typing import Iterable, Iterator


class GraphList(Graph):
    """
    An RDF graph augmented with methods for writing and reading ordered
    lists, such as the targets of a delegation chain.
    """

    def add_list(self, items: Iterable[Node]) -> Node:
        items = list(items)
        head: Node = RDF.nil
        for node in reversed(items):
            cell = BNode()
            self.add((cell, RDF.first, node))
            self.add((cell, RDF.rest, head))
            head = cell
        return head

    def get_list(self, list_node: Node) -> Iterator[Node]:
        node: Node | None = list_node
        while first := self.value(node, RDF.first, any=False):
            yield first
            node = self.value(node, RDF.rest, any=False)
        if not node == RDF.nil:
            raise RuntimeError("Node is not an RDF list")
