"""
The closed set of type expressions of the Oblige notation. Every node can be
rendered back to canonical notation text; parsing that text yields an equal
node again.

Nodes produced by the parser (`NumberLit`, `Interval`, `Exponential`, `Unit`,
`Tuple`, `List`, `Record`, `Function`, `Delegation`, `Predicate`,
`TaggedUnion`, `Union`, `Complement`, `Reference`, `TypeVariable`) are
complemented by three nodes that only the resolver produces: `Primitive`,
`Named` and `Deferred`.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum, auto
from numbers import Real
from typing import Optional, Iterator, Iterable, Callable, Union as U

# Binding strength of the notation's operators, loosest first. A node is put
# in parentheses when it is rendered in a context that binds tighter than it.
PREDICATE, FUNCTION, BAR, UNION, COMPLEMENT, DELEGATION, APPLICATION, ATOM \
    = range(8)

# Exponentials whose exact value would take more bits than this are kept
# symbolic.
EXACT_BITS = 4096

Position = tuple  # (line, column)


class Suffix(Enum):
    NONE = auto()
    OPTIONAL = auto()
    VARIADIC = auto()

    def __str__(self) -> str:
        return {Suffix.NONE: "", Suffix.OPTIONAL: "?",
            Suffix.VARIADIC: "..."}[self]


class TypeExpr(ABC):
    """
    Base class of all type expressions. Equality is structural; the source
    position a node was parsed from does not take part in it.
    """

    precedence: int = ATOM
    position: Optional[Position] = None

    @abstractmethod
    def key(self) -> tuple:
        return NotImplemented

    @abstractmethod
    def _text(self) -> str:
        return NotImplemented

    def children(self) -> Iterator[TypeExpr]:
        return iter(())

    def text(self, level: int = PREDICATE) -> str:
        result = self._text()
        if self.precedence < level:
            return f"({result})"
        return result

    def __str__(self) -> str:
        return self.text()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.text()})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TypeExpr) and self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def at(self, position: Optional[Position]) -> TypeExpr:
        self.position = position
        return self

    def __iter__(self) -> Iterator[TypeExpr]:
        """
        Iterate through this node and all of its substructures.
        """
        yield self
        for child in self.children():
            yield from child

    def type_variables(self) -> list[TypeVariable]:
        """
        Obtain the distinct type variables in this expression, in order of
        first occurrence.
        """
        result: list[TypeVariable] = []
        for t in self:
            if isinstance(t, TypeVariable) and t not in result:
                result.append(t)
        return result

    def unfold(self) -> TypeExpr:
        return self


class NumberLit(TypeExpr):
    def __init__(self, value: int | float):
        self.value = value

    def key(self) -> tuple:
        if isinstance(self.value, float) and math.isnan(self.value):
            return ("NumberLit", "nan")
        return ("NumberLit", self.value)

    def _text(self) -> str:
        return numeral(self.value)

    @property
    def nan(self) -> bool:
        return isinstance(self.value, float) and math.isnan(self.value)


class Exponential(TypeExpr):
    """
    The number `base^exponent`. Its value is computed on demand; when it would
    be too large to compute exactly, the node stands for itself and is
    compared through its logarithm.
    """

    def __init__(self, base: NumberLit | Exponential,
            exponent: NumberLit | Exponential):
        self.base = base
        self.exponent = exponent

    def key(self) -> tuple:
        return ("Exponential", self.base.key(), self.exponent.key())

    def children(self) -> Iterator[TypeExpr]:
        yield self.base
        yield self.exponent

    def _text(self) -> str:
        base = self.base.text()
        if isinstance(self.base, Exponential):
            base = f"({base})"
        return f"{base}^{self.exponent.text()}"

    def evaluate(self) -> int | float | None:
        """
        Compute the value of this exponential, or return `None` if it is too
        large to be computed exactly or so small that it would round to zero.
        Raises `ValueError` for exponentials that have no real value.
        """
        b = value_of(self.base)
        e = value_of(self.exponent)
        if b is None or e is None:
            return None
        if isinstance(b, int) and isinstance(e, int) and e >= 0:
            if abs(b) > 1 and e * math.log2(abs(b)) > EXACT_BITS:
                return None
            return b ** e
        try:
            result = math.pow(b, e)
        except OverflowError:
            return None
        if result == 0 and b != 0 and math.isfinite(b) and math.isfinite(e):
            return None
        return result

    def sign(self) -> int:
        b = value_of(self.base)
        e = value_of(self.exponent)
        if b is None:
            assert isinstance(self.base, Exponential)
            b = self.base.sign()
        if b > 0:
            return 1
        elif b == 0:
            return 0
        elif isinstance(e, int):
            return -1 if e % 2 else 1
        raise ValueError(f"Cannot determine the sign of {self}.")

    def log10(self) -> float:
        """
        The base-10 logarithm of the magnitude of this exponential.
        """
        b, e = self.base, self.exponent
        blog = b.log10() if isinstance(b, Exponential) \
            else math.log10(abs(b.value)) if b.value else -math.inf
        evalue = value_of(e)
        if evalue is None:
            assert isinstance(e, Exponential)
            evalue = math.inf if e.sign() > 0 else -math.inf
        try:
            return blog * float(evalue)
        except OverflowError:
            return math.inf if blog > 0 else -math.inf


class Interval(TypeExpr):
    "The half-open numeric range `[low, high)`."

    def __init__(self, low: NumberLit | Exponential,
            high: NumberLit | Exponential):
        self.low = low
        self.high = high

    def key(self) -> tuple:
        return ("Interval", self.low.key(), self.high.key())

    def children(self) -> Iterator[TypeExpr]:
        yield self.low
        yield self.high

    def _text(self) -> str:
        return f"{self.low} ... {self.high}"

    def __contains__(self, value: object) -> bool:
        return is_number(value) and not isnan(value) \
            and compare(self.low, value) <= 0 \
            and compare(value, self.high) < 0


class Unit(TypeExpr):
    def key(self) -> tuple:
        return ("Unit",)

    def _text(self) -> str:
        return "void"


class Primitive(TypeExpr):
    """
    A built-in opaque domain: `string` holds text values and `any` holds
    every value.
    """

    def __init__(self, name: str):
        self.name = name

    def key(self) -> tuple:
        return ("Primitive", self.name)

    def _text(self) -> str:
        return self.name


class Tuple(TypeExpr):
    def __init__(self, items: Iterable[TypeExpr]):
        self.items = tuple(items)

    def key(self) -> tuple:
        return ("Tuple",) + tuple(t.key() for t in self.items)

    def children(self) -> Iterator[TypeExpr]:
        return iter(self.items)

    def _text(self) -> str:
        return f"#[{', '.join(item(t) for t in self.items)}]"


class List(TypeExpr):
    """
    A sequence of any length, each element of which belongs to one of the
    member types. Members form a set: order and repetition do not matter.
    """

    def __init__(self, items: Iterable[TypeExpr]):
        members: list[TypeExpr] = []
        for t in items:
            if t not in members:
                members.append(t)
        self.items = tuple(members)

    def key(self) -> tuple:
        return ("List", frozenset(t.key() for t in self.items))

    def children(self) -> Iterator[TypeExpr]:
        return iter(self.items)

    def _text(self) -> str:
        return f"[{', '.join(item(t) for t in self.items)}]"


class Record(TypeExpr):
    def __init__(self, fields: dict[str, TypeExpr]):
        self.fields = dict(fields)

    def key(self) -> tuple:
        return ("Record",) + tuple(sorted(
            ((k, v.key()) for k, v in self.fields.items()),
            key=lambda kv: kv[0]))

    def children(self) -> Iterator[TypeExpr]:
        return iter(self.fields.values())

    def _text(self) -> str:
        if not self.fields:
            return "{}"
        fields = ", ".join(f"{k}: {v.text()}" for k, v in self.fields.items())
        return f"{{ {fields} }}"


class Parameter(object):
    "An input of a function type, with its optional or variadic suffix."

    def __init__(self, type: TypeExpr, suffix: Suffix = Suffix.NONE,
            position: Optional[Position] = None):
        self.type = type
        self.suffix = suffix
        self.position = position

    def key(self) -> tuple:
        return (self.type.key(), self.suffix)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Parameter) and self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        return f"{item(self.type, BAR)}{self.suffix}"

    def __repr__(self) -> str:
        return f"Parameter({self})"


class Function(TypeExpr):
    precedence = FUNCTION

    def __init__(self, inputs: Iterable[Parameter | TypeExpr],
            outputs: Iterable[TypeExpr]):
        self.inputs = tuple(p if isinstance(p, Parameter) else Parameter(p)
            for p in inputs)
        self.outputs = tuple(outputs)

    def key(self) -> tuple:
        return ("Function", tuple(p.key() for p in self.inputs),
            tuple(t.key() for t in self.outputs))

    def children(self) -> Iterator[TypeExpr]:
        for p in self.inputs:
            yield p.type
        yield from self.outputs

    def _text(self) -> str:
        inputs = ", ".join(str(p) for p in self.inputs)
        if len(self.outputs) == 1:
            outputs = self.outputs[0].text(FUNCTION)
        else:
            outputs = ", ".join(item(t, BAR) for t in self.outputs)
        return f"{inputs} -> {outputs}" if inputs else f"-> {outputs}"

    @property
    def variadic(self) -> bool:
        return bool(self.inputs) and \
            self.inputs[-1].suffix is Suffix.VARIADIC

    def arity(self) -> tuple[int, Optional[int]]:
        """
        The least and the greatest number of positional arguments this
        function accepts. The greatest is `None` for variadic functions.
        """
        minimum = 0
        for i, p in enumerate(self.inputs):
            if p.suffix is Suffix.NONE:
                minimum = i + 1
        if self.variadic:
            return minimum, None
        return minimum, len(self.inputs)

    def parameter(self, i: int) -> Optional[Parameter]:
        """
        The parameter that receives the positional argument at index `i`.
        """
        if i < len(self.inputs):
            return self.inputs[i]
        elif self.variadic:
            return self.inputs[-1]
        return None


class Delegation(TypeExpr):
    """
    A type whose member lookups fall back on the target types, in order, when
    the base type does not provide the member itself.
    """

    precedence = DELEGATION

    def __init__(self, base: TypeExpr, targets: Iterable[TypeExpr]):
        self.base = base
        self.targets = tuple(targets)

    def key(self) -> tuple:
        return ("Delegation", self.base.key(),
            tuple(t.key() for t in self.targets))

    def children(self) -> Iterator[TypeExpr]:
        yield self.base
        yield from self.targets

    def _text(self) -> str:
        targets = ", ".join(t.text(APPLICATION) for t in self.targets)
        return f"{self.base.text(APPLICATION)} <| {targets}"


class Predicate(TypeExpr):
    """
    The body type, valid only for bindings of the quantified variables that
    satisfy the constraint. Without explicitly listed variables, every type
    variable of the body is quantified.
    """

    precedence = PREDICATE

    def __init__(self, constraint: TypeExpr, body: TypeExpr,
            variables: Iterable[TypeVariable] = ()):
        self.constraint = constraint
        self.body = body
        self.variables = tuple(variables)

    def key(self) -> tuple:
        return ("Predicate", self.constraint.key(), self.body.key(),
            tuple(v.key() for v in self.variables))

    def children(self) -> Iterator[TypeExpr]:
        yield self.constraint
        yield self.body

    def quantified(self) -> list[TypeVariable]:
        return list(self.variables) or self.body.type_variables()

    def _text(self) -> str:
        head = ""
        if self.variables:
            head = ", ".join(v.text() for v in self.variables) + ": "
        return f"{head}{self.constraint.text(FUNCTION)} => " \
            f"{self.body.text(PREDICATE)}"


class Tag(object):
    "A constructor of a tagged union: a name with positional fields."

    def __init__(self, name: str, fields: Iterable[TypeExpr] = ()):
        self.name = name
        self.fields = tuple(fields)

    def key(self) -> tuple:
        return (self.name,) + tuple(t.key() for t in self.fields)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tag) and self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        return " ".join([self.name] + [t.text(ATOM) for t in self.fields])


class TaggedUnion(TypeExpr):
    precedence = BAR

    def __init__(self, tags: Iterable[Tag]):
        self.tags = tuple(tags)

    def key(self) -> tuple:
        return ("TaggedUnion",) + tuple(t.key() for t in self.tags)

    def children(self) -> Iterator[TypeExpr]:
        for tag in self.tags:
            yield from tag.fields

    def _text(self) -> str:
        return " | ".join(str(t) for t in self.tags)

    def tag(self, name: str) -> Optional[Tag]:
        for t in self.tags:
            if t.name == name:
                return t
        return None


class Union(TypeExpr):
    precedence = UNION

    def __init__(self, left: TypeExpr, right: TypeExpr):
        self.left = left
        self.right = right

    def key(self) -> tuple:
        return ("Union", self.left.key(), self.right.key())

    def children(self) -> Iterator[TypeExpr]:
        yield self.left
        yield self.right

    def _text(self) -> str:
        return f"{self.left.text(UNION)} + {self.right.text(COMPLEMENT)}"


class Complement(TypeExpr):
    "The values of the left type that are not values of the right type."

    precedence = COMPLEMENT

    def __init__(self, left: TypeExpr, right: TypeExpr):
        self.left = left
        self.right = right

    def key(self) -> tuple:
        return ("Complement", self.left.key(), self.right.key())

    def children(self) -> Iterator[TypeExpr]:
        yield self.left
        yield self.right

    def _text(self) -> str:
        return f"{self.left.text(COMPLEMENT)} \\ " \
            f"{self.right.text(DELEGATION)}"


class Reference(TypeExpr):
    def __init__(self, name: str, args: Iterable[TypeExpr] = ()):
        self.name = name
        self.args = tuple(args)
        if self.args:
            self.precedence = APPLICATION

    def key(self) -> tuple:
        return ("Reference", self.name) + tuple(a.key() for a in self.args)

    def children(self) -> Iterator[TypeExpr]:
        return iter(self.args)

    def _text(self) -> str:
        return " ".join([self.name] + [a.text(ATOM) for a in self.args])


class TypeVariable(TypeExpr):
    """
    A type variable, written as a single uppercase letter. The scope is the
    name of the declaration that introduced it implicitly, if any.
    """

    def __init__(self, name: str, scope: Optional[str] = None):
        self.name = name
        self.scope = scope

    def key(self) -> tuple:
        return ("TypeVariable", self.name, self.scope)

    def _text(self) -> str:
        return self.name


class Named(TypeExpr):
    """
    An expanded reference. Its body is the normal form of the referenced
    declaration, with the arguments substituted. Because the body of a
    recursive type refers back to the node itself, equality only considers
    the name and the arguments.
    """

    def __init__(self, name: str, args: Iterable[TypeExpr] = ()):
        self.name = name
        self.args = tuple(args)
        self.body: Optional[TypeExpr] = None
        if self.args:
            self.precedence = APPLICATION

    def key(self) -> tuple:
        return ("Named", self.name) + tuple(a.key() for a in self.args)

    def children(self) -> Iterator[TypeExpr]:
        return iter(self.args)

    def _text(self) -> str:
        return " ".join([self.name] + [a.text(ATOM) for a in self.args])

    def unfold(self) -> TypeExpr:
        t: TypeExpr = self
        seen: set[int] = set()
        while isinstance(t, Named) and t.body is not None \
                and id(t) not in seen:
            seen.add(id(t))
            t = t.body
        return t


class Deferred(TypeExpr):
    """
    A delegation target that is only resolved when a lookup needs it. The
    bindings of the target's type variables are kept, since the same target
    means different things in different instantiations.
    """

    def __init__(self, expr: TypeExpr, thunk: Callable[[], TypeExpr],
            bindings: Optional[dict[str, TypeExpr]] = None):
        self.expr = expr
        self.thunk = thunk
        self.bindings = {v.name: bindings[v.name]
            for v in expr.type_variables() if v.name in (bindings or {})}
        self._forced: Optional[TypeExpr] = None

    def key(self) -> tuple:
        return ("Deferred", self.expr.key()) + tuple(
            (name, t.key()) for name, t in sorted(self.bindings.items()))

    def _text(self) -> str:
        return self.expr.text(ATOM)

    def force(self) -> TypeExpr:
        if self._forced is None:
            self._forced = self.thunk()
        return self._forced


class TypeDeclaration(object):
    """
    A named, possibly parametric, type definition. Immutable once parsed.
    """

    def __init__(self, name: str, parameters: Iterable[TypeVariable],
            body: TypeExpr, position: Optional[Position] = None):
        self.name = name
        self.parameters = tuple(parameters)
        self.body = body
        self.position = position

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def key(self) -> tuple:
        return (self.name, tuple(p.name for p in self.parameters),
            self.body.key())

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TypeDeclaration) and \
            self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        params = "".join(f" {p.name}" for p in self.parameters)
        return f"{self.name}{params}: {self.body.text()}"

    def __repr__(self) -> str:
        return f"TypeDeclaration({self})"


Number = U[int, float, Exponential]


def item(t: TypeExpr, level: int = BAR) -> str:
    """
    Render a type as an item of a comma-separated list. Delegations would
    otherwise swallow the items that follow them.
    """
    if isinstance(t, Delegation):
        return f"({t.text()})"
    return t.text(level)


def numeral(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        elif math.isinf(value):
            return "+infinity" if value > 0 else "-infinity"
        result = repr(value)
        if "e" in result or "E" in result:
            result = format(Decimal(result), "f")
        if "." not in result:
            result += ".0"
        return result
    return str(value)


def is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def isnan(value: object) -> bool:
    return isinstance(value, float) and math.isnan(value)


def value_of(x: NumberLit | Exponential) -> int | float | None:
    """
    The numeric value of a literal or an exponential, or `None` for an
    exponential too large to compute.
    """
    if isinstance(x, NumberLit):
        return x.value
    return x.evaluate()


def compare(x: object, y: object) -> int:
    """
    Three-way comparison between numbers, literals and (possibly symbolic)
    exponentials. Neither side may be `nan`.
    """
    a = x.value if isinstance(x, NumberLit) else x
    b = y.value if isinstance(y, NumberLit) else y
    if isinstance(a, Exponential):
        a = symbolic(a)
    if isinstance(b, Exponential):
        b = symbolic(b)
    if isinstance(a, Exponential) or isinstance(b, Exponential):
        ka, kb = magnitude(a), magnitude(b)
        return (ka > kb) - (ka < kb)
    return (a > b) - (a < b)


def symbolic(x: Exponential) -> Number:
    v = x.evaluate()
    return x if v is None else v


def magnitude(x: Number) -> tuple[int, float]:
    """
    An order-preserving key based on sign and logarithm, for comparisons that
    involve numbers too large to compute.
    """
    if isinstance(x, Exponential):
        sign, log = x.sign(), x.log10()
    elif x == 0:
        return (0, 0.0)
    elif math.isinf(x):
        return (2, 0.0) if x > 0 else (-2, 0.0)
    else:
        sign, log = (1 if x > 0 else -1), math.log10(abs(x))
    return (sign, log) if sign > 0 else (sign, -log)


# Errors #####################################################################

class ObligeError(Exception):
    "Any error raised by this library."
