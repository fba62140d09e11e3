from oblige.type import \
    TypeExpr, TypeDeclaration, NumberLit, Exponential, Interval, Unit, \
    Primitive, Tuple, List, Record, Parameter, Suffix, Function, \
    Delegation, Predicate, Tag, TaggedUnion, Union, Complement, Reference, \
    TypeVariable, Named, Deferred, ObligeError
from oblige.lang import \
    parse, parse_type, ParseError
from oblige.registry import \
    Registry, load, DuplicateNameError
from oblige.resolve import \
    Resolver, resolve, lookup_member, ResolutionError, UndefinedTypeError, \
    ArityError, InvalidNumberError, EmptyIntervalError, PredicateViolation, \
    CyclicTypeError, ExpansionLimitError
from oblige.match import \
    Matcher, matches, is_subtype, overlaps
from oblige.value import \
    Tagged, Call
