"""
Structural matching of values against normal forms, and the subtype and
overlap relations between normal forms. Nothing here consults a registry:
references have already been expanded by the resolver.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Optional

from oblige.type import (TypeExpr, NumberLit, Exponential, Interval, Unit,
    Primitive, Tuple, List, Record, Function, Delegation, Predicate,
    TaggedUnion, Union, Complement, Reference, TypeVariable, Named, Deferred,
    is_number, isnan, compare, magnitude, symbolic)
from oblige.value import Call, tagged

Bounds = dict[TypeVariable, TypeExpr]


class Matcher(object):
    """
    Decides membership and subtyping. With `open_records`, a record type
    holds every keyed value that has at least its fields, and a record type
    with more fields is a subtype of one with fewer; otherwise the field
    names must coincide exactly.
    """

    def __init__(self, open_records: bool = True):
        self.open_records = open_records

    def matches(self, value: object, t: TypeExpr) -> bool:
        """
        Check whether a value inhabits a type. A type expression given as the
        value is checked for being a subtype instead.
        """
        if isinstance(value, TypeExpr):
            return self.is_subtype(value, t)
        return self.contains(value, t, {})

    def is_subtype(self, a: TypeExpr, b: TypeExpr) -> bool:
        return self.subtype(a, b, {}, {}, set())

    def overlaps(self, a: TypeExpr, b: TypeExpr) -> bool:
        """
        Check whether two types may share a value. When that cannot be
        decided structurally, they are assumed to overlap.
        """
        return self.overlap(a, b, set())

    # Values ##################################################################

    def contains(self, value: object, t: TypeExpr, bounds: Bounds) -> bool:
        if isinstance(t, Named):
            return self.contains(value, t.unfold(), bounds)
        elif isinstance(t, Deferred):
            return self.contains(value, t.force(), bounds)
        elif isinstance(t, NumberLit):
            if not is_number(value):
                return False
            if t.nan or isnan(value):
                return t.nan and isnan(value)
            return value == t.value
        elif isinstance(t, Exponential):
            return is_number(value) and not isnan(value) \
                and compare(value, t) == 0
        elif isinstance(t, Interval):
            return value in t
        elif isinstance(t, Unit):
            return value is None
        elif isinstance(t, Primitive):
            return t.name == "any" or isinstance(value, str)
        elif isinstance(t, Tuple):
            return isinstance(value, (list, tuple)) \
                and len(value) == len(t.items) \
                and all(self.contains(v, s, bounds)
                    for v, s in zip(value, t.items))
        elif isinstance(t, List):
            return isinstance(value, (list, tuple)) and all(
                any(self.contains(v, s, bounds) for s in t.items)
                for v in value)
        elif isinstance(t, Record):
            return self.contains_record(value, t, bounds)
        elif isinstance(t, Function):
            return self.contains_call(value, t, bounds)
        elif isinstance(t, TaggedUnion):
            v = tagged(value)
            tag = t.tag(v.tag) if v else None
            return tag is not None and len(tag.fields) == len(v.fields) \
                and all(self.contains(f, s, bounds)
                    for f, s in zip(v.fields, tag.fields))
        elif isinstance(t, Union):
            return self.contains(value, t.left, bounds) \
                or self.contains(value, t.right, bounds)
        elif isinstance(t, Complement):
            return self.contains(value, t.left, bounds) \
                and not self.contains(value, t.right, bounds)
        elif isinstance(t, Delegation):
            return self.contains(value, t.base, bounds)
        elif isinstance(t, Predicate):
            bounds = dict(bounds)
            for v in t.quantified():
                bounds[v] = t.constraint
            return self.contains(value, t.body, bounds)
        elif isinstance(t, TypeVariable):
            if t in bounds:
                bound = bounds[t]
                rest = {k: b for k, b in bounds.items() if k != t}
                return self.contains(value, bound, rest)
            return True
        elif isinstance(t, Reference):
            raise TypeError(f"Reference {t} must be resolved before matching")
        raise TypeError(f"Unknown type expression {t!r}")

    def contains_record(self, value: object, t: Record,
            bounds: Bounds) -> bool:
        if isinstance(value, Mapping):
            if not self.open_records and set(value) != set(t.fields):
                return False
            return all(k in value and self.contains(value[k], s, bounds)
                for k, s in t.fields.items())

        if value is None or isinstance(value, (str, bytes, list, tuple)) \
                or is_number(value) or isinstance(value, bool):
            return False
        if not self.open_records and hasattr(value, "__dict__"):
            names = {k for k in vars(value) if not k.startswith("_")}
            if names != set(t.fields):
                return False
        missing = object()
        for k, s in t.fields.items():
            v = getattr(value, k, missing)
            if v is missing or not self.contains(v, s, bounds):
                return False
        return True

    def contains_call(self, value: object, t: Function,
            bounds: Bounds) -> bool:
        low, high = t.arity()
        if isinstance(value, Call):
            n = len(value.args)
            if n < low or (high is not None and n > high):
                return False
            for i, arg in enumerate(value.args):
                p = t.parameter(i)
                assert p is not None
                if not self.contains(arg, p.type, bounds):
                    return False
            return True
        elif callable(value):
            accepted = arity(value)
            if accepted is None:
                return False
            clow, chigh = accepted
            return clow <= low and (chigh is None
                or (high is not None and high <= chigh))
        return False

    # Types ###################################################################

    def subtype(self, a: TypeExpr, b: TypeExpr, left: Bounds, right: Bounds,
            assumed: set[tuple[int, int]]) -> bool:

        if isinstance(a, (Named, Deferred)) or isinstance(b, (Named, Deferred)):
            # Recursive types are related if they are related under the
            # assumption that they are related
            pair = (id(a), id(b))
            if pair in assumed:
                return True
            return self.subtype(unfold(a), unfold(b), left, right,
                assumed | {pair})

        def rec(x: TypeExpr, y: TypeExpr, left: Bounds = left,
                right: Bounds = right) -> bool:
            return self.subtype(x, y, left, right, assumed)

        if a == b:
            return True
        elif isinstance(b, Primitive) and b.name == "any":
            return True

        # Decompose the subject
        if isinstance(a, Union):
            return rec(a.left, b) and rec(a.right, b)
        elif isinstance(a, Predicate):
            return rec(a.body, b,
                left=left | {v: a.constraint for v in a.quantified()})
        elif isinstance(a, TypeVariable) and a in left:
            rest = {k: v for k, v in left.items() if k != a}
            return rec(left[a], b, left=rest)
        elif isinstance(a, Complement):
            if rec(a.left, b):
                return True
            if isinstance(b, Complement) and rec(a.left, b.left):
                return rec(b.right, a.right) \
                    or not self.overlaps(a.left, b.right)
            return False

        # Decompose the object
        if isinstance(b, Predicate):
            return rec(a, b.body,
                right=right | {v: b.constraint for v in b.quantified()})
        elif isinstance(b, TypeVariable):
            if b in right:
                rest = {k: v for k, v in right.items() if k != b}
                return rec(a, right[b], right=rest)
            return True
        elif isinstance(b, Union):
            return rec(a, b.left) or rec(a, b.right) or covered(a, b)
        elif isinstance(b, Complement):
            return rec(a, b.left) and not self.overlaps(a, b.right)
        elif isinstance(b, Delegation):
            return rec(a, b.base) and all(
                self.subtype_member(a, b, k, rec) for k in members(b))
        elif isinstance(a, Delegation):
            if isinstance(b, Record):
                return self.subtype_delegation(a, b, rec)
            return rec(a.base, b)

        # Structure
        if isinstance(a, (NumberLit, Exponential)):
            if isinstance(a, NumberLit) and a.nan:
                return isinstance(b, NumberLit) and b.nan
            if isinstance(b, (NumberLit, Exponential)):
                return not (isinstance(b, NumberLit) and b.nan) \
                    and compare(a, b) == 0
            elif isinstance(b, Interval):
                return compare(b.low, a) <= 0 and compare(a, b.high) < 0
            return False
        elif isinstance(a, Interval):
            return isinstance(b, Interval) \
                and compare(b.low, a.low) <= 0 \
                and compare(a.high, b.high) <= 0
        elif isinstance(a, Unit):
            return isinstance(b, Unit)
        elif isinstance(a, Primitive):
            return isinstance(b, Primitive) and a.name == b.name
        elif isinstance(a, Tuple):
            if isinstance(b, Tuple):
                return len(a.items) == len(b.items) and all(
                    rec(x, y) for x, y in zip(a.items, b.items))
            elif isinstance(b, List):
                return all(any(rec(x, y) for y in b.items) for x in a.items)
            return False
        elif isinstance(a, List):
            return isinstance(b, List) and all(
                any(rec(x, y) for y in b.items) for x in a.items)
        elif isinstance(a, Record):
            if not isinstance(b, Record):
                return False
            if not self.open_records and set(a.fields) != set(b.fields):
                return False
            return all(k in a.fields and rec(a.fields[k], t)
                for k, t in b.fields.items())
        elif isinstance(a, Function):
            return isinstance(b, Function) and self.subtype_function(a, b,
                rec)
        elif isinstance(a, TaggedUnion):
            if not isinstance(b, TaggedUnion):
                return False
            for tag in a.tags:
                other = b.tag(tag.name)
                if other is None or len(other.fields) != len(tag.fields) \
                        or not all(rec(x, y)
                            for x, y in zip(tag.fields, other.fields)):
                    return False
            return True
        elif isinstance(a, TypeVariable):
            return False
        elif isinstance(a, Reference) or isinstance(b, Reference):
            raise TypeError("References must be resolved before comparing")
        raise TypeError(f"Unknown type expression {a!r}")

    def subtype_function(self, a: Function, b: Function, rec) -> bool:
        """
        A function type is a subtype of another if it accepts at least the
        argument counts and argument types that the other accepts, and
        returns no more than the other returns.
        """
        alow, ahigh = a.arity()
        blow, bhigh = b.arity()
        if alow > blow or (ahigh is not None
                and (bhigh is None or bhigh > ahigh)):
            return False

        n = max(len(a.inputs), len(b.inputs)) + 1
        for i in range(n):
            p, q = a.parameter(i), b.parameter(i)
            if q is None:
                break
            assert p is not None
            if not rec(q.type, p.type):
                return False

        return len(a.outputs) == len(b.outputs) and all(
            rec(x, y) for x, y in zip(a.outputs, b.outputs))

    def subtype_delegation(self, a: Delegation, b: Record, rec) -> bool:
        if not self.open_records:
            base = a.base.unfold()
            if not isinstance(base, Record) \
                    or set(base.fields) != set(b.fields):
                return False
        for k, t in b.fields.items():
            m = member(a, k)
            if m is None or not rec(m, t):
                return False
        return True

    def subtype_member(self, a: TypeExpr, b: TypeExpr, name: str,
            rec) -> bool:
        m, n = member(a, name), member(b, name)
        return m is not None and n is not None and rec(m, n)

    def overlap(self, a: TypeExpr, b: TypeExpr,
            assumed: set[tuple[int, int]]) -> bool:

        if isinstance(a, (Named, Deferred)) or isinstance(b, (Named, Deferred)):
            pair = (id(a), id(b))
            if pair in assumed:
                return True
            return self.overlap(unfold(a), unfold(b), assumed | {pair})

        def rec(x: TypeExpr, y: TypeExpr) -> bool:
            return self.overlap(x, y, assumed)

        for x, y in ((a, b), (b, a)):
            if isinstance(x, Primitive) and x.name == "any":
                return True
            elif isinstance(x, Union):
                return rec(x.left, y) or rec(x.right, y)
            elif isinstance(x, Complement):
                return rec(x.left, y) and not self.is_subtype(y, x.right)
            elif isinstance(x, Predicate):
                return rec(x.body, y)
            elif isinstance(x, TypeVariable):
                return True
            elif isinstance(x, Delegation):
                return rec(x.base, y)

        if isinstance(a, (NumberLit, Exponential, Interval)):
            if not isinstance(b, (NumberLit, Exponential, Interval)):
                return False
            if isinstance(a, Interval) and isinstance(b, Interval):
                return compare(a.low, b.high) < 0 \
                    and compare(b.low, a.high) < 0
            elif isinstance(a, Interval):
                return self.subtype(b, a, {}, {}, set())
            return self.subtype(a, b, {}, {}, set())
        elif isinstance(a, (Tuple, List)):
            if isinstance(a, List) and isinstance(b, List):
                return True
            elif isinstance(a, Tuple) and isinstance(b, Tuple):
                return len(a.items) == len(b.items) and all(
                    rec(x, y) for x, y in zip(a.items, b.items))
            elif isinstance(b, (Tuple, List)):
                t, s = (a, b) if isinstance(a, Tuple) else (b, a)
                return all(any(rec(x, y) for y in s.items) for x in t.items)
            return False
        elif isinstance(a, Record):
            if not isinstance(b, Record):
                return False
            if not self.open_records and set(a.fields) != set(b.fields):
                return False
            return all(rec(t, b.fields[k])
                for k, t in a.fields.items() if k in b.fields)
        elif isinstance(a, TaggedUnion):
            if not isinstance(b, TaggedUnion):
                return False
            for tag in a.tags:
                other = b.tag(tag.name)
                if other is not None and len(other.fields) == len(tag.fields) \
                        and all(rec(x, y)
                            for x, y in zip(tag.fields, other.fields)):
                    return True
            return False
        elif isinstance(a, Function):
            return isinstance(b, Function)
        elif isinstance(a, Unit):
            return isinstance(b, Unit)
        elif isinstance(a, Primitive):
            return isinstance(b, Primitive) and a.name == b.name
        elif isinstance(a, Reference) or isinstance(b, Reference):
            raise TypeError("References must be resolved before comparing")
        raise TypeError(f"Unknown type expression {a!r}")


def unfold(t: TypeExpr) -> TypeExpr:
    if isinstance(t, Deferred):
        return t.force()
    return t.unfold()


def intervals(t: TypeExpr, seen: Optional[set[int]] = None) -> list[Interval]:
    "The intervals and single numbers that make up a union of numbers."
    seen = set() if seen is None else seen
    if id(t) in seen:
        return []
    seen.add(id(t))
    if isinstance(t, Named):
        return intervals(t.unfold(), seen)
    elif isinstance(t, Union):
        return intervals(t.left, seen) + intervals(t.right, seen)
    elif isinstance(t, Interval):
        return [t]
    return []


def covered(a: TypeExpr, b: Union) -> bool:
    """
    Check whether an interval is covered by the intervals of a union
    together, even if no single one of them covers it.
    """
    if not isinstance(a, Interval):
        return False
    current: object = a.low
    for i in sorted(intervals(b), key=lambda i: magnitude_key(i.low)):
        if compare(i.low, current) <= 0 < compare(i.high, current):
            current = i.high
            if compare(current, a.high) >= 0:
                return True
    return False


def magnitude_key(x: NumberLit | Exponential) -> tuple[int, float]:
    return magnitude(x.value if isinstance(x, NumberLit) else symbolic(x))


def arity(f: object) -> Optional[tuple[int, Optional[int]]]:
    """
    The least and greatest number of positional arguments a Python callable
    accepts, or `None` if it has no inspectable signature.
    """
    try:
        signature = inspect.signature(f)  # type: ignore
    except (TypeError, ValueError):
        return None
    low, high = 0, 0
    for p in signature.parameters.values():
        if p.kind is p.VAR_POSITIONAL:
            return low, None
        elif p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
            high += 1
            if p.default is p.empty:
                low = high
    return low, high


def member(t: TypeExpr, name: str,
        visited: Optional[set[int]] = None) -> Optional[TypeExpr]:
    """
    Find the type of a member: a field of a record or, for a delegation, a
    member of its base or else of the first of its targets that has it.
    """
    visited = set() if visited is None else visited
    while isinstance(t, (Named, Deferred, Predicate)):
        if id(t) in visited:
            return None
        visited.add(id(t))
        t = t.body if isinstance(t, Predicate) else unfold(t)

    if isinstance(t, Record):
        return t.fields.get(name)
    elif isinstance(t, Delegation):
        for s in (t.base,) + t.targets:
            m = member(s, name, visited)
            if m is not None:
                return m
    return None


def members(t: TypeExpr, visited: Optional[set[int]] = None) -> list[str]:
    "The names of all members that a record or delegation chain provides."
    visited = set() if visited is None else visited
    while isinstance(t, (Named, Deferred, Predicate)):
        if id(t) in visited:
            return []
        visited.add(id(t))
        t = t.body if isinstance(t, Predicate) else unfold(t)

    if isinstance(t, Record):
        return list(t.fields)
    elif isinstance(t, Delegation):
        result: list[str] = []
        for s in (t.base,) + t.targets:
            for k in members(s, visited):
                if k not in result:
                    result.append(k)
        return result
    return []


default = Matcher()


def matches(value: object, t: TypeExpr) -> bool:
    return default.matches(value, t)


def is_subtype(a: TypeExpr, b: TypeExpr) -> bool:
    return default.is_subtype(a, b)


def overlaps(a: TypeExpr, b: TypeExpr) -> bool:
    return default.overlaps(a, b)
