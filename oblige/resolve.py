"""
Resolution turns a type expression into its normal form: references are
expanded into `Named` nodes holding the body of the referenced declaration,
parameters are substituted positionally, predicates are checked against
explicit bindings, and numeric literals are evaluated.

Set operations stay structural; the matcher evaluates them when queried.
Delegation targets are only resolved once a member lookup misses the base.

A reference that recurs underneath a tuple, list, record, function or
tagged-union field is a recursive type, represented by a cyclic graph through
its `Named` node. A reference that recurs without such a constructor in
between (as in `a: a`, or `a: b` with `b: a + int`) could never be unfolded
and is rejected.
"""

from __future__ import annotations

import logging
from typing import Optional, Iterator, Iterable, Callable, Mapping

from oblige.type import (TypeExpr, NumberLit, Exponential, Interval, Unit,
    Primitive, Tuple, List, Record, Parameter, Function, Delegation,
    Predicate, Tag, TaggedUnion, Union, Complement, Reference, TypeVariable,
    Named, Deferred, Position, ObligeError, compare)
from oblige.registry import Registry
from oblige.lang import parse_type
from oblige.match import Matcher, member

logger = logging.getLogger(__name__)

MAX_STEPS = 10000
MAX_DEPTH = 64

Bindings = Mapping["str | TypeVariable", TypeExpr]


class Resolver(object):
    """
    Resolves type expressions against a registry. The expansion budget bounds
    the number of references expanded in a single call (`max_steps`) and how
    deeply expansions may nest (`max_depth`), so that parametric types whose
    arguments keep growing fail instead of exhausting memory.
    """

    def __init__(self, registry: Registry,
            max_steps: int = MAX_STEPS,
            max_depth: int = MAX_DEPTH):
        self.registry = registry
        self.max_steps = max_steps
        self.max_depth = max_depth
        self.steps = 0
        self.depth = 0
        self.expanded: dict[tuple, Named] = dict()
        self.pending: list[tuple[TypeExpr, TypeExpr, TypeVariable,
            Optional[Position]]] = []

    def resolve(self, expr: TypeExpr,
            bindings: Optional[Bindings] = None) -> TypeExpr:
        """
        Obtain the normal form of an expression. Type variables that occur in
        the bindings are replaced by the (resolved) bound types.
        """

        def run() -> TypeExpr:
            env: dict[str, TypeExpr] = dict()
            for k, v in (bindings or {}).items():
                name = k.name if isinstance(k, TypeVariable) else k
                env[name] = self.expand(v, {}, None)
            return self.expand(expr, env, None)

        return self.session(run).unfold()

    def session(self, f: Callable[[], TypeExpr]) -> TypeExpr:
        self.steps = 0
        self.depth = 0
        try:
            result = f()
            self.finish()
        except ObligeError:
            self.expanded.clear()
            self.pending.clear()
            raise
        except RecursionError as e:
            self.expanded.clear()
            self.pending.clear()
            raise ExpansionLimitError(self.steps, self.depth) from e
        return result

    def finish(self) -> None:
        """
        Check what could only be checked once every expansion was complete,
        then hand the expansions to the registry's memo.
        """
        productive(self.expanded.values())

        matcher = Matcher()
        pending, self.pending = self.pending, []
        for binding, constraint, variable, position in pending:
            # Bindings that are themselves generic are checked when they are
            # instantiated
            if binding.type_variables():
                continue
            if not matcher.is_subtype(binding, constraint):
                raise PredicateViolation(variable, binding, constraint,
                    position)

        self.registry.memoize(self.expanded)

    def expand(self, expr: TypeExpr, env: dict[str, TypeExpr],
            scope: Optional[str]) -> TypeExpr:

        def rec(t: TypeExpr) -> TypeExpr:
            return self.expand(t, env, scope)

        if isinstance(expr, (NumberLit, Unit, Primitive, Named, Deferred)):
            return expr
        elif isinstance(expr, Exponential):
            return self.number(expr)
        elif isinstance(expr, Interval):
            return self.interval(expr)
        elif isinstance(expr, Tuple):
            return Tuple(rec(t) for t in expr.items).at(expr.position)
        elif isinstance(expr, List):
            return List(rec(t) for t in expr.items).at(expr.position)
        elif isinstance(expr, Record):
            return Record({k: rec(v) for k, v in expr.fields.items()}) \
                .at(expr.position)
        elif isinstance(expr, Function):
            return Function(
                (Parameter(rec(p.type), p.suffix, p.position)
                    for p in expr.inputs),
                (rec(t) for t in expr.outputs)
            ).at(expr.position)
        elif isinstance(expr, TaggedUnion):
            return TaggedUnion(Tag(t.name, (rec(f) for f in t.fields))
                for t in expr.tags).at(expr.position)
        elif isinstance(expr, Union):
            return Union(rec(expr.left), rec(expr.right)).at(expr.position)
        elif isinstance(expr, Complement):
            return Complement(rec(expr.left), rec(expr.right)) \
                .at(expr.position)
        elif isinstance(expr, Delegation):
            return Delegation(rec(expr.base),
                (self.defer(t, env, scope) for t in expr.targets)
            ).at(expr.position)
        elif isinstance(expr, Predicate):
            return self.predicate(expr, env, scope)
        elif isinstance(expr, TypeVariable):
            if expr.scope is not None:
                return expr
            elif expr.name in env:
                return env[expr.name]
            return TypeVariable(expr.name, scope).at(expr.position)
        elif isinstance(expr, Reference):
            return self.reference(expr, env, scope)
        raise TypeError(f"Unknown type expression {expr!r}")

    def reference(self, expr: Reference, env: dict[str, TypeExpr],
            scope: Optional[str]) -> Named:
        decl = self.registry.lookup(expr.name)
        if decl is None:
            raise UndefinedTypeError(expr.name, expr.position)
        if len(expr.args) != decl.arity:
            raise ArityError(expr.name, decl.arity, len(expr.args),
                expr.position)

        args = tuple(self.expand(a, env, scope) for a in expr.args)
        named = Named(expr.name, args).at(expr.position)
        key = named.key()

        # Either a finished expansion, or the very expansion we are in the
        # middle of: the latter ties the knot of a recursive type
        previous = self.expanded.get(key)
        if previous is None:
            previous = self.registry.memoized(key)
        if previous is not None:
            return previous

        self.steps += 1
        if self.steps > self.max_steps or self.depth >= self.max_depth:
            logger.debug("Expansion budget exhausted at %s", named)
            raise ExpansionLimitError(self.steps, self.depth, named,
                expr.position)

        self.expanded[key] = named
        self.depth += 1
        try:
            named.body = self.expand(decl.body,
                {p.name: a for p, a in zip(decl.parameters, args)},
                decl.name)
        finally:
            self.depth -= 1
        logger.debug("Expanded %s", named)
        return named

    def predicate(self, expr: Predicate, env: dict[str, TypeExpr],
            scope: Optional[str]) -> TypeExpr:
        constraint = self.expand(expr.constraint, env, scope)
        body = self.expand(expr.body, env, scope)
        free: list[TypeVariable] = []
        for v in expr.quantified():
            if v.scope is None and v.name in env:
                self.pending.append((env[v.name], constraint, v,
                    expr.position))
            else:
                variable = self.expand(v, env, scope)
                assert isinstance(variable, TypeVariable)
                free.append(variable)
        if not free:
            return body
        return Predicate(constraint, body, free).at(expr.position)

    def defer(self, target: TypeExpr, env: dict[str, TypeExpr],
            scope: Optional[str]) -> Deferred:
        resolver = Resolver(self.registry, self.max_steps, self.max_depth)
        return Deferred(target, lambda: resolver.session(
            lambda: resolver.expand(target, env, scope)), env)

    def number(self, x: NumberLit | Exponential) -> NumberLit | Exponential:
        if isinstance(x, NumberLit):
            return x
        try:
            value = x.evaluate()
        except (ValueError, ZeroDivisionError) as e:
            raise InvalidNumberError(x, x.position) from e
        if value is None:
            return Exponential(self.number(x.base), self.number(x.exponent)) \
                .at(x.position)
        return NumberLit(value).at(x.position)

    def interval(self, expr: Interval) -> Interval:
        low, high = self.number(expr.low), self.number(expr.high)
        if any(isinstance(n, NumberLit) and n.nan for n in (low, high)):
            raise EmptyIntervalError(expr, expr.position)
        try:
            if compare(low, high) >= 0:
                raise EmptyIntervalError(expr, expr.position)
        except ValueError as e:
            raise InvalidNumberError(expr, expr.position) from e
        return Interval(low, high).at(expr.position)


def unguarded(t: TypeExpr) -> Iterator[TypeExpr]:
    """
    The substructures that a value of the given type is checked against
    without first descending into the value.
    """
    if isinstance(t, Named):
        if t.body is not None:
            yield t.body
    elif isinstance(t, (Union, Complement)):
        yield t.left
        yield t.right
    elif isinstance(t, Delegation):
        yield t.base
    elif isinstance(t, Predicate):
        yield t.constraint
        yield t.body


def productive(roots: Iterable[Named]) -> None:
    """
    Make sure that no expansion leads back to itself without passing through
    a structural constructor.
    """
    state: dict[int, bool] = dict()

    def visit(t: TypeExpr, path: list[Named]) -> None:
        if isinstance(t, Named):
            if id(t) in state:
                if not state[id(t)]:
                    cycle = path[[id(n) for n in path].index(id(t)):]
                    raise CyclicTypeError([n.name for n in cycle] + [t.name],
                        t.position)
                return
            state[id(t)] = False
            for s in unguarded(t):
                visit(s, path + [t])
            state[id(t)] = True
        else:
            for s in unguarded(t):
                visit(s, path)

    for root in list(roots):
        visit(root, [])


def resolve(registry: Registry, expr: TypeExpr | str,
        bindings: Optional[Bindings] = None,
        max_steps: int = MAX_STEPS,
        max_depth: int = MAX_DEPTH) -> TypeExpr:
    """
    Obtain the normal form of a type expression, or of the notation text of
    one, against the declarations of a registry.
    """
    if isinstance(expr, str):
        expr = parse_type(expr)
    return Resolver(registry, max_steps, max_depth).resolve(expr, bindings)


def lookup_member(registry: Registry, expr: TypeExpr | str,
        name: str) -> Optional[TypeExpr]:
    """
    Find the type of a member of a type: one of its own record fields or,
    failing that, a member found along its delegation targets, in order.
    """
    return member(resolve(registry, expr), name)


# Errors #####################################################################

class ResolutionError(ObligeError):
    "Raised when a type expression cannot be brought into normal form."

    def __init__(self, message: str, position: Optional[Position] = None):
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position:
            line, column = self.position
            return f"Line {line}, column {column}: {self.message}"
        return self.message


class UndefinedTypeError(ResolutionError):
    def __init__(self, name: str, position: Optional[Position] = None):
        self.name = name
        super().__init__(f"Type {name} is undefined.", position)


class ArityError(ResolutionError):
    def __init__(self, name: str, expected: int, given: int,
            position: Optional[Position] = None):
        self.name = name
        self.expected = expected
        self.given = given
        super().__init__(
            f"Type {name} takes {expected} "
            f"parameter{'' if expected == 1 else 's'}; {given} given.",
            position)


class InvalidNumberError(ResolutionError):
    def __init__(self, expr: TypeExpr, position: Optional[Position] = None):
        self.expr = expr
        super().__init__(f"The number {expr} has no real value.", position)


class EmptyIntervalError(ResolutionError):
    def __init__(self, expr: Interval, position: Optional[Position] = None):
        self.expr = expr
        super().__init__(
            f"The interval {expr} is empty; it requires a lower bound "
            "strictly below its upper bound.", position)


class PredicateViolation(ResolutionError):
    def __init__(self, variable: TypeVariable, binding: TypeExpr,
            constraint: TypeExpr, position: Optional[Position] = None):
        self.variable = variable
        self.binding = binding
        self.constraint = constraint
        super().__init__(
            f"Type {binding} bound to {variable} does not satisfy "
            f"the constraint {constraint}.", position)


class CyclicTypeError(ResolutionError):
    def __init__(self, names: list[str],
            position: Optional[Position] = None):
        self.names = names
        super().__init__(
            f"Encountered the cyclic type {' -> '.join(names)}.", position)


class ExpansionLimitError(ResolutionError):
    def __init__(self, steps: int, depth: int,
            expr: Optional[TypeExpr] = None,
            position: Optional[Position] = None):
        self.steps = steps
        self.depth = depth
        self.expr = expr
        what = f" while expanding {expr}" if expr is not None else ""
        super().__init__(
            f"Exceeded the expansion budget after {steps} steps "
            f"at depth {depth}{what}.", position)
