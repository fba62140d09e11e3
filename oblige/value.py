"""
Descriptors for values that have no native Python counterpart: inhabitants of
tagged unions, and argument lists for checking calls against function types.
"""

from __future__ import annotations


class Tagged(object):
    "A value of a tagged union: a tag name with positional field values."

    def __init__(self, tag: str, *fields: object):
        self.tag = tag
        self.fields = fields

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tagged) and self.tag == other.tag \
            and self.fields == other.fields

    def __hash__(self) -> int:
        return hash((self.tag, self.fields))

    def __repr__(self) -> str:
        fields = "".join(f", {f!r}" for f in self.fields)
        return f"Tagged({self.tag!r}{fields})"


class Call(object):
    """
    The positional arguments of a call. A call matches a function type if
    the function accepts that many arguments and each argument matches the
    parameter that receives it.
    """

    def __init__(self, *args: object):
        self.args = args

    def __len__(self) -> int:
        return len(self.args)

    def __repr__(self) -> str:
        return f"Call({', '.join(repr(a) for a in self.args)})"


def tagged(value: object) -> Tagged | None:
    """
    View a value as a tagged-union inhabitant, if possible. Python's booleans
    are the nullary tags `false` and `true`.
    """
    if isinstance(value, Tagged):
        return value
    elif isinstance(value, bool):
        return Tagged("true" if value else "false")
    return None
