"""
This module describes the declarations of a registry as an RDF vocabulary, so
that type definitions can be published and queried alongside other linked
data.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from rdflib import Literal, Namespace
from rdflib.term import Node, URIRef

from oblige.namespace import OB, EX, RDF, RDFS
from oblige.list import GraphList
from oblige.registry import Registry, builtins
from oblige.resolve import resolve, ResolutionError
from oblige.match import Matcher
from oblige.type import (TypeDeclaration, TypeExpr, Reference, Delegation,
    TaggedUnion)

logger = logging.getLogger(__name__)


class TypeGraph(GraphList):
    """
    A type graph represents the declarations of a registry as RDF: every
    declaration becomes an `ob:Type` resource carrying its notation text.
    """

    def __init__(self, registry: Registry,
            namespace: Namespace = EX,
            minimal: bool = False,
            with_taxonomy: bool | None = None,
            with_delegation: bool | None = None,
            with_constructors: bool | None = None,
            with_labels: bool | None = None,
            matcher: Matcher | None = None,
            *nargs, **kwargs):

        super().__init__(*nargs, **kwargs)

        def default(switch: bool | None, inherit: bool = not minimal) -> bool:
            return inherit if switch is None else switch

        self.registry = registry
        self.namespace = namespace
        self.matcher = matcher or Matcher()
        self.with_taxonomy = default(with_taxonomy)
        self.with_delegation = default(with_delegation)
        self.with_constructors = default(with_constructors)
        self.with_labels = default(with_labels)

        self.bind("ob", OB)
        self.bind("", namespace)

    def uri(self, name: str) -> URIRef:
        return self.namespace[name]

    def add_vocabulary(self) -> None:
        """
        Add a resource for every declaration of the registry, and, if
        requested, the subtype relations between them.
        """
        for decl in self.registry:
            if decl.name not in builtins:
                self.add_declaration(decl)
        if self.with_taxonomy:
            self.add_taxonomy()

    def add_declaration(self, decl: TypeDeclaration) -> Node:
        ref = self.uri(decl.name)
        self.add((ref, RDF.type, OB.Type))
        self.add((ref, OB.arity, Literal(decl.arity)))
        self.add((ref, OB.text, Literal(decl.body.text())))
        if decl.parameters:
            self.add((ref, OB.parameters, self.add_list(
                Literal(p.name) for p in decl.parameters)))
        if self.with_labels:
            self.add((ref, RDFS.label, Literal(decl.name)))

        body = decl.body
        if self.with_delegation and isinstance(body, Delegation):
            self.add((ref, OB.base, self.add_reference(body.base)))
            self.add((ref, OB.delegatesTo, self.add_list(
                self.add_reference(t) for t in body.targets)))

        if self.with_constructors and isinstance(body, TaggedUnion):
            for tag in body.tags:
                node = self.uri(f"{decl.name}.{tag.name}")
                self.add((node, RDF.type, OB.Constructor))
                self.add((node, OB.constructorOf, ref))
                self.add((node, OB.arity, Literal(len(tag.fields))))
                if self.with_labels:
                    self.add((node, RDFS.label, Literal(tag.name)))
        return ref

    def add_reference(self, t: TypeExpr) -> Node:
        """
        A plain reference to a declared type is linked to that type's
        resource; anything else is described by its notation text.
        """
        if isinstance(t, Reference) and not t.args \
                and t.name in self.registry and t.name not in builtins:
            return self.uri(t.name)
        return Literal(t.text())

    def add_taxonomy(self) -> None:
        """
        Add `rdfs:subClassOf` relations between the declarations without
        parameters, reduced to those that are not implied by transitivity.
        """
        resolved: dict[str, TypeExpr] = dict()
        for decl in self.registry:
            if decl.arity or decl.name in builtins:
                continue
            try:
                resolved[decl.name] = resolve(self.registry,
                    Reference(decl.name))
            except ResolutionError as e:
                logger.debug("Leaving %s out of the taxonomy: %s", decl.name,
                    e)

        supertypes: dict[str, set[str]] = defaultdict(set)
        for a, ta in resolved.items():
            for b, tb in resolved.items():
                if a == b:
                    continue
                try:
                    if self.matcher.is_subtype(ta, tb):
                        supertypes[a].add(b)
                except ResolutionError as e:
                    # Delegation targets are only resolved once needed
                    logger.debug("Cannot compare %s to %s: %s", a, b, e)

        def above(x: str) -> set[str]:
            return supertypes.get(x, set())

        for a, supers in supertypes.items():
            for c in supers:
                if not any(c in above(b) and a not in above(b)
                        and b not in above(c)
                        for b in supers if b != c):
                    self.add((self.uri(a), RDFS.subClassOf, self.uri(c)))
