"""
The type registry: the declarations of one parsing session, keyed by name.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Optional, Iterator, Iterable

from oblige.type import TypeDeclaration, Primitive, Named, ObligeError
from oblige.lang import parse

logger = logging.getLogger(__name__)

# Opaque domains that every registry knows about
builtins = {
    "string": TypeDeclaration("string", (), Primitive("string")),
    "any": TypeDeclaration("any", (), Primitive("any")),
}

PRELUDE = """
number: -infinity ... +infinity + +infinity + nan
boolean: false | true
"""


class Registry(object):
    """
    Declarations are inserted with their raw bodies; forward references are
    fine, since nothing is resolved until a query asks for it. Resolved forms
    are memoized per name and argument signature, and forgotten whenever a
    new declaration comes in.

    Inserting is serialized by a lock. Once all sources are loaded, reading
    requires no locking, because declarations are immutable.
    """

    def __init__(self, prelude: bool = False):
        self.declarations: dict[str, TypeDeclaration] = dict(builtins)
        self.memo: dict[tuple, Named] = dict()
        self._lock = Lock()
        if prelude:
            self.parse(PRELUDE)

    def __contains__(self, key: str | TypeDeclaration) -> bool:
        if isinstance(key, TypeDeclaration):
            return self.declarations.get(key.name) == key
        return key in self.declarations

    def __iter__(self) -> Iterator[TypeDeclaration]:
        return iter(self.declarations.values())

    def __len__(self) -> int:
        return len(self.declarations)

    def names(self, include_builtins: bool = False) -> list[str]:
        return [name for name in self.declarations
            if include_builtins or name not in builtins]

    def lookup(self, name: str) -> Optional[TypeDeclaration]:
        return self.declarations.get(name)

    def declare(self, decl: TypeDeclaration) -> None:
        """
        Add a declaration. Declaring the same thing twice is harmless, but
        giving an existing name a different definition is an error.
        """
        with self._lock:
            self._check(decl, self.declarations)
            self._insert(decl)

    def load(self, decls: Iterable[TypeDeclaration]) -> None:
        """
        Add a batch of declarations: either all of them are added, or, when
        one of them conflicts, none is.
        """
        decls = list(decls)
        with self._lock:
            pending = dict(self.declarations)
            for decl in decls:
                self._check(decl, pending)
                pending[decl.name] = decl
            for decl in decls:
                self._insert(decl)

    def parse(self, string: str) -> list[TypeDeclaration]:
        """
        Parse source text and load its declarations.
        """
        decls = parse(string)
        self.load(decls)
        return decls

    def memoized(self, key: tuple) -> Optional[Named]:
        return self.memo.get(key)

    def memoize(self, entries: dict[tuple, Named]) -> None:
        with self._lock:
            self.memo.update(entries)

    @staticmethod
    def _check(decl: TypeDeclaration,
            existing: dict[str, TypeDeclaration]) -> None:
        previous = existing.get(decl.name)
        if previous is not None and (decl.name in builtins
                or previous != decl):
            raise DuplicateNameError(decl, previous)

    def _insert(self, decl: TypeDeclaration) -> None:
        if self.declarations.get(decl.name) == decl:
            return
        self.declarations[decl.name] = decl
        self.memo.clear()
        logger.debug("Declared %s", decl.name)


def load(registry: Registry, decls: Iterable[TypeDeclaration]) -> None:
    registry.load(decls)


# Errors #####################################################################

class DuplicateNameError(ObligeError):
    "Raised when a name is given a second, different definition."

    def __init__(self, new: TypeDeclaration, old: TypeDeclaration):
        self.new = new
        self.old = old

    @property
    def position(self):
        return self.new.position

    def __str__(self) -> str:
        where = ""
        if self.new.position:
            line, column = self.new.position
            where = f"Line {line}, column {column}: "
        if self.old.name in builtins:
            return f"{where}Type {self.new.name} is built in and " \
                "cannot be redeclared."
        return f"{where}Type {self.new.name} is already declared as " \
            f"`{self.old}`."
