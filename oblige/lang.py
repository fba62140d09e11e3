"""
This module parses the Oblige notation: source text consisting of type
declarations such as

    int: 0 ... 2^32
    list A: [A]
    tree A: leaf | node (tree A) (tree A)
    slice: [A], number, number? -> [A]

into `TypeDeclaration`s.
"""

from __future__ import annotations

from functools import reduce
from typing import Optional, Iterator

from oblige.type import (TypeExpr, TypeDeclaration, NumberLit, Exponential,
    Interval, Unit, Tuple, List, Record, Parameter, Suffix, Function,
    Delegation, Predicate, Tag, TaggedUnion, Union, Complement, Reference,
    TypeVariable, ObligeError)

RESERVED = ("void", "nan")

# Longest first, so that `...` is not read as three dots, etcetera.
PUNCTUATION = ("...", "#[", "->", "=>", "<|", "(", ")", "[", "]", "{", "}",
    ":", ",", "|", "+", "\\", "?", "^")

BRACKETS = {"(": ")", "[": "]", "#[": "]", "{": "}"}

# A line break directly after or before one of these does not end a
# declaration.
CONTINUE_AFTER = frozenset((":", ",", "->", "=>", "<|", "|", "+", "\\", "^",
    "...", "(", "[", "#[", "{", "newline"))
CONTINUE_BEFORE = frozenset(("->", "=>", "<|", "|", "+", "\\", "^", "...",
    "?", ",", ")", "]", "}", "newline", "end"))

# Tokens after which a sign belongs to a binary operator rather than to a
# number.
OPERAND_END = frozenset(("name", "number", "void", ")", "]", "}", "?"))

TYPE_START = frozenset(("name", "number", "void", "(", "[", "#[", "{"))


class Token(object):
    def __init__(self, kind: str, text: str, line: int, column: int,
            value: object = None):
        self.kind = kind
        self.text = text
        self.line = line
        self.column = column
        self.value = value

    @property
    def position(self) -> tuple[int, int]:
        return self.line, self.column

    @property
    def variable(self) -> bool:
        return self.kind == "name" and len(self.text) == 1 \
            and self.text.isupper()

    def __str__(self) -> str:
        if self.kind == "end":
            return "end of input"
        elif self.kind == "newline":
            return "line break"
        return f"'{self.text}'"

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.text!r}, {self.line}:{self.column})"


def tokenize(string: str) -> Iterator[Token]:
    """
    Break up a string into tokens. Line breaks are only significant outside
    of brackets (or directly inside braces, where they separate fields), and
    only where they cannot be continuations.
    """
    tokens = list(scan(string))
    previous = "newline"
    for i, token in enumerate(tokens):
        if token.kind == "newline" and (previous in CONTINUE_AFTER
                or tokens[i + 1].kind in CONTINUE_BEFORE):
            continue
        previous = token.kind
        yield token


def scan(string: str) -> Iterator[Token]:
    i, line, start = 0, 1, 0
    n = len(string)
    brackets: list[Token] = []
    previous = "newline"

    def name_char(c: str) -> bool:
        return c.isalnum() or c in "_$"

    while i < n:
        c = string[i]
        column = i - start + 1
        token: Optional[Token] = None

        if c == "\n":
            if not brackets or brackets[-1].text == "{":
                token = Token("newline", c, line, column)
            i += 1
            line, start = line + 1, i
        elif c.isspace():
            i += 1
        elif string.startswith("//", i):
            while i < n and string[i] != "\n":
                i += 1
        elif c.isalpha() or c in "_$":
            j = i + 1
            while j < n and (name_char(string[j]) or (string[j] == "-"
                    and j + 1 < n and (string[j + 1].isalpha()
                        or string[j + 1] in "_$"))):
                j += 1
            word = string[i:j]
            if word == "void":
                token = Token("void", word, line, column)
            elif word == "nan":
                token = Token("number", word, line, column, float("nan"))
            else:
                token = Token("name", word, line, column)
            i = j
        elif c.isdigit() or (c in "+-" and (
                (c == "-" or previous not in OPERAND_END) and
                (i + 1 < n and string[i + 1].isdigit()
                    or infinity_at(string, i + 1)))):
            j, value = number_at(string, i, line, column)
            token = Token("number", string[i:j], line, column, value)
            i = j
        else:
            for p in PUNCTUATION:
                if string.startswith(p, i):
                    token = Token(p, p, line, column)
                    i += len(p)
                    break
            else:
                if c == "-":
                    raise MalformedNumber(line, column, c)
                raise UnexpectedToken(line, column, "a type",
                    f"'{c}'")

            if token.text in BRACKETS:
                brackets.append(token)
            elif token.text in (")", "]", "}"):
                if not brackets or BRACKETS[brackets[-1].text] != token.text:
                    raise BracketMismatch(line, column,
                        f"'{BRACKETS[brackets[-1].text]}'" if brackets
                        else "no closing bracket", str(token))
                brackets.pop()

        if token:
            previous = token.kind
            yield token

    if brackets:
        opener = brackets[-1]
        raise BracketMismatch(opener.line, opener.column,
            f"'{BRACKETS[opener.text]}' to close {opener}", "end of input")

    yield Token("newline", "", line, n - start + 1)
    yield Token("end", "", line, n - start + 1)


def infinity_at(string: str, i: int) -> bool:
    j = i + len("infinity")
    return string.startswith("infinity", i) and (j >= len(string) or not (
        string[j].isalnum() or string[j] in "_$-"))


def number_at(string: str, i: int, line: int, column: int) \
        -> tuple[int, int | float]:
    """
    Read the numeric literal at position `i`, returning the position after it
    together with its value.
    """
    begin, sign = i, 1
    if string[i] in "+-":
        sign = -1 if string[i] == "-" else 1
        i += 1
        if infinity_at(string, i):
            return i + len("infinity"), sign * float("inf")

    j = i
    while j < len(string) and string[j].isdigit():
        j += 1
    fraction = False
    if string.startswith(".", j) and not string.startswith("...", j):
        if j + 1 < len(string) and string[j + 1].isdigit():
            j += 1
            fraction = True
            while j < len(string) and string[j].isdigit():
                j += 1
        else:
            raise MalformedNumber(line, column, string[begin:j + 1])
    if j < len(string) and (string[j].isalpha() or string[j] in "_$" or (
            string[j] == "." and not string.startswith("...", j))):
        end = j
        while end < len(string) and not string[end].isspace():
            end += 1
        raise MalformedNumber(line, column, string[begin:end])

    literal = string[i:j]
    return j, sign * (float(literal) if fraction else int(literal))


class Parser(object):
    """
    A recursive descent parser over the tokens of a single source text.
    Operators, loosest first: `=>`, `->`, `|`, `+`, `\\`, `<|`, then
    juxtaposition for parametric application.
    """

    def __init__(self, string: str):
        self.tokens = list(tokenize(string))
        self.index = 0

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def at(self, *kinds: str) -> bool:
        return self.peek().kind in kinds

    def next(self) -> Token:
        token = self.peek()
        self.index += 1
        return token

    def expect(self, kind: str, expected: str | None = None) -> Token:
        token = self.peek()
        if token.kind != kind:
            raise UnexpectedToken(token.line, token.column,
                expected or f"'{kind}'", str(token))
        return self.next()

    def unexpected(self, expected: str) -> UnexpectedToken:
        token = self.peek()
        return UnexpectedToken(token.line, token.column, expected, str(token))

    def skip_separators(self, *kinds: str) -> None:
        while self.at(*kinds):
            self.next()

    def declaration_ahead(self, offset: int = 0) -> bool:
        """
        Look ahead for `name name* :`, the start of a declaration or field.
        """
        token = self.peek(offset)
        if token.kind != "name" or token.variable:
            return False
        while token.kind == "name":
            offset += 1
            token = self.peek(offset)
        return token.kind == ":"

    def continues(self, commas: bool) -> bool:
        "Whether a comma here continues the current comma-separated list."
        return commas and self.at(",") and \
            self.peek(1).kind in TYPE_START and not self.declaration_ahead(1)

    # Declarations ###########################################################

    def declarations(self) -> list[TypeDeclaration]:
        result: list[TypeDeclaration] = []
        self.skip_separators("newline", ",")
        while not self.at("end"):
            result.append(self.declaration())
            if not self.at("newline", ",", "end"):
                raise self.unexpected("a line break or ','")
            self.skip_separators("newline", ",")
        return result

    def declaration(self) -> TypeDeclaration:
        name = self.type_name()
        parameters: list[TypeVariable] = []
        while self.at("name"):
            token = self.next()
            if not token.variable:
                raise UnexpectedToken(token.line, token.column,
                    "a type variable or ':'", str(token))
            variable = TypeVariable(token.text).at(token.position)
            if variable in parameters:
                raise UnexpectedToken(token.line, token.column,
                    "a new type variable", str(token))
            parameters.append(variable)
        self.expect(":", "':'")
        body = self.typedef(commas=True, top=True)
        return TypeDeclaration(name.text, parameters, body, name.position)

    def type_name(self) -> Token:
        token = self.peek()
        if token.text in RESERVED:
            raise ReservedWordError(token.line, token.column, token.text)
        if token.kind != "name" or token.variable:
            raise self.unexpected("a type name")
        return self.next()

    # Type expressions #######################################################

    def typedef(self, commas: bool = True, top: bool = False) -> TypeExpr:
        start = self.peek()
        variables = self.predicate_head(commas)
        if variables:
            constraint = self.function(commas)
            self.expect("=>", "'=>'")
            body = self.typedef(commas, top)
            return Predicate(constraint, body, variables).at(start.position)

        expr = self.function(commas, top)
        if self.at("=>"):
            self.next()
            body = self.typedef(commas, top)
            return Predicate(expr, body).at(start.position)
        return expr

    def predicate_head(self, commas: bool) -> list[TypeVariable]:
        """
        Consume `A, B:`, the variables a predicate explicitly quantifies, if
        present.
        """
        offset = 0
        names: list[Token] = []
        while self.peek(offset).variable:
            names.append(self.peek(offset))
            if commas and self.peek(offset + 1).kind == ",":
                offset += 2
            else:
                offset += 1
                break
        if not names or self.peek(offset).kind != ":" \
                or self.peek(offset - 1).kind == ",":
            return []
        self.index += offset + 1
        return [TypeVariable(t.text).at(t.position) for t in names]

    def function(self, commas: bool, top: bool = False) -> TypeExpr:
        start = self.peek()
        inputs = [] if self.at("->") else self.arguments(commas, top)
        if self.at("->"):
            return self.function_from(inputs, commas).at(start.position)
        if len(inputs) == 1 and inputs[0].suffix is Suffix.NONE:
            return inputs[0].type
        raise self.unexpected("'->'")

    def function_from(self, inputs: list[Parameter],
            commas: bool) -> Function:
        self.expect("->")
        start = self.peek()
        rest = self.arguments(commas, False)
        outputs: list[TypeExpr]
        if self.at("->"):
            outputs = [self.function_from(rest, commas).at(start.position)]
        else:
            for p in rest:
                if p.suffix is not Suffix.NONE:
                    line, column = p.position
                    raise UnexpectedToken(line, column,
                        "an output type without suffix", str(p))
            outputs = [p.type for p in rest]

        for i, p in enumerate(inputs):
            if p.suffix is Suffix.VARIADIC and i != len(inputs) - 1:
                line, column = p.position
                raise VariadicPositionError(line, column, str(p))
        return Function(inputs, outputs)

    def arguments(self, commas: bool, top: bool) -> list[Parameter]:
        result = [self.parameter(commas, top)]
        while self.continues(commas):
            self.next()
            result.append(self.parameter(commas, top))
        return result

    def parameter(self, commas: bool, top: bool) -> Parameter:
        start = self.peek()
        t = self.bar(commas, top)
        suffix = Suffix.NONE
        if self.at("?"):
            self.next()
            suffix = Suffix.OPTIONAL
        elif self.at("..."):
            self.next()
            suffix = Suffix.VARIADIC
        return Parameter(t, suffix, start.position)

    def bar(self, commas: bool, top: bool) -> TypeExpr:
        """
        Alternatives separated by `|`. When they make up a whole declaration
        body, alternatives that all start with a bare name form a tagged
        union; anywhere else, including function inputs, `|` is a set union.
        """
        start = self.peek()
        alternatives = [self.union(commas)]
        while self.at("|"):
            self.next()
            alternatives.append(self.union(commas))

        if len(alternatives) == 1:
            return alternatives[0]
        elif top and not self.at("->", "?", "...") \
                and not self.continues(commas) \
                and all(isinstance(a, Reference) for a in alternatives):
            tags: list[Tag] = []
            for a in alternatives:
                assert isinstance(a, Reference)
                if any(t.name == a.name for t in tags):
                    line, column = a.position or start.position
                    raise DuplicateFieldError(line, column, a.name, "tag")
                tags.append(Tag(a.name, a.args))
            return TaggedUnion(tags).at(start.position)
        return reduce(Union, alternatives).at(start.position)

    def union(self, commas: bool) -> TypeExpr:
        start = self.peek()
        result = self.complement(commas)
        while self.at("+"):
            self.next()
            result = Union(result, self.complement(commas)).at(start.position)
        return result

    def complement(self, commas: bool) -> TypeExpr:
        start = self.peek()
        result = self.delegation(commas)
        while self.at("\\"):
            self.next()
            result = Complement(result, self.delegation(commas)) \
                .at(start.position)
        return result

    def delegation(self, commas: bool) -> TypeExpr:
        start = self.peek()
        result = self.application()
        while self.at("<|"):
            self.next()
            targets = [self.application()]
            while self.continues(commas):
                self.next()
                targets.append(self.application())
            result = Delegation(result, targets).at(start.position)
        return result

    def application(self) -> TypeExpr:
        token = self.peek()
        if token.kind == "name" and not token.variable:
            self.next()
            args: list[TypeExpr] = []
            while self.at(*TYPE_START):
                args.append(self.atom())
            return Reference(token.text, args).at(token.position)
        return self.atom()

    def atom(self) -> TypeExpr:
        token = self.peek()
        if token.kind == "name":
            self.next()
            if token.variable:
                return TypeVariable(token.text).at(token.position)
            return Reference(token.text).at(token.position)
        elif token.kind == "void":
            self.next()
            return Unit().at(token.position)
        elif token.kind == "number":
            return self.number()
        elif token.kind == "(":
            self.next()
            self.skip_separators("newline")
            result = self.typedef(commas=True)
            self.expect(")", "')'")
            return result
        elif token.kind == "[":
            self.next()
            return List(self.items("]")).at(token.position)
        elif token.kind == "#[":
            self.next()
            return Tuple(self.items("]")).at(token.position)
        elif token.kind == "{":
            self.next()
            return self.record().at(token.position)
        raise self.unexpected("a type")

    def items(self, closer: str) -> list[TypeExpr]:
        result: list[TypeExpr] = []
        while not self.at(closer):
            result.append(self.typedef(commas=False))
            if self.at(","):
                self.next()
            elif not self.at(closer):
                raise self.unexpected(f"',' or '{closer}'")
        self.next()
        return result

    def record(self) -> Record:
        fields: dict[str, TypeExpr] = {}
        self.skip_separators("newline")
        while not self.at("}"):
            token = self.peek()
            if token.kind != "name":
                raise self.unexpected("a field name")
            self.next()
            if token.text in fields:
                raise DuplicateFieldError(token.line, token.column,
                    token.text)
            # Variables after a field name are implicit generics anyway
            while self.at("name") and self.peek().variable:
                self.next()
            self.expect(":", "':'")
            fields[token.text] = self.typedef(commas=True, top=True)
            if self.at(",", "newline"):
                self.skip_separators(",", "newline")
            elif not self.at("}"):
                raise self.unexpected("',', a line break or '}'")
        self.next()
        return Record(fields)

    def number(self) -> TypeExpr:
        start = self.peek()
        low = self.exponential()
        if self.at("...") and self.peek(1).kind == "number":
            self.next()
            high = self.exponential()
            return Interval(low, high).at(start.position)
        return low

    def exponential(self) -> NumberLit | Exponential:
        token = self.expect("number", "a number")
        base = NumberLit(token.value).at(token.position)
        if self.at("^"):
            self.next()
            return Exponential(base, self.exponential()).at(token.position)
        return base


def parse(string: str) -> list[TypeDeclaration]:
    """
    Parse Oblige source text into its declarations, in order of appearance.
    """
    return Parser(string).declarations()


def parse_type(string: str) -> TypeExpr:
    """
    Parse a single type expression, such as `[int] -> int`.
    """
    parser = Parser(string)
    parser.skip_separators("newline")
    if parser.at("end"):
        raise EmptyParse(1, 1, "a type", "end of input")
    result = parser.typedef(commas=True)
    parser.skip_separators("newline")
    if not parser.at("end"):
        raise parser.unexpected("end of input")
    return result


# Errors #####################################################################

class ParseError(ObligeError):
    """
    Raised for malformed source text. Records where the problem was found,
    what the parser expected there, and what it found instead.
    """

    def __init__(self, line: int, column: int, expected: str, found: str):
        self.line = line
        self.column = column
        self.expected = expected
        self.found = found

    @property
    def position(self) -> tuple[int, int]:
        return self.line, self.column

    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: " \
            f"expected {self.expected}, but found {self.found}."


class UnexpectedToken(ParseError):
    pass


class BracketMismatch(ParseError):
    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: mismatched " \
            f"bracket; expected {self.expected}, but found {self.found}."


class EmptyParse(ParseError):
    def __str__(self) -> str:
        return "Empty parse."


class MalformedNumber(ParseError):
    def __init__(self, line: int, column: int, literal: str):
        super().__init__(line, column, "a number", f"'{literal}'")

    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: " \
            f"malformed number {self.found}."


class DuplicateFieldError(ParseError):
    def __init__(self, line: int, column: int, name: str,
            kind: str = "field"):
        self.name = name
        self.kind = kind
        super().__init__(line, column, f"a new {kind} name", f"'{name}'")

    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: " \
            f"duplicate {self.kind} name '{self.name}'."


class VariadicPositionError(ParseError):
    def __init__(self, line: int, column: int, parameter: str):
        super().__init__(line, column, "'->' after a variadic parameter",
            f"more parameters after '{parameter}'")

    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: " \
            f"a variadic parameter must be the last input."


class ReservedWordError(ParseError):
    def __init__(self, line: int, column: int, word: str):
        self.word = word
        super().__init__(line, column, "a type name", f"'{word}'")

    def __str__(self) -> str:
        return f"Line {self.line}, column {self.column}: " \
            f"'{self.word}' is reserved and cannot name a type."
