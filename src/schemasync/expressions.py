"""
Expression parser for legacy query snippets.

Legacy configurations embed query-language snippets such as function bodies
and role predicates as text, e.g.::

    Lambda(
      "ref", // comment
      [Var("ref"), "this/is/not/a/comment"]
    )

The text is tokenized and parsed into a small expression tree which renders
to JSON. Nothing is ever evaluated; only calls to PascalCase function names,
literals, arrays and objects are accepted.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from .exceptions import ExpressionError


class Expr:
    """Base class of expression tree nodes."""

    def to_wire(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Expr):
    value: Union[str, int, float, bool, None]

    def to_wire(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ArrayExpr(Expr):
    items: Tuple[Expr, ...] = ()

    def to_wire(self) -> Any:
        return [item.to_wire() for item in self.items]


@dataclass(frozen=True)
class ObjectExpr(Expr):
    entries: Tuple[Tuple[str, Expr], ...] = ()

    def to_wire(self) -> Any:
        # Wrapped so a user key can never be mistaken for ``@call``
        return {"@object": {key: value.to_wire() for key, value in self.entries}}


@dataclass(frozen=True)
class Call(Expr):
    name: str
    args: Tuple[Expr, ...] = ()

    def to_wire(self) -> Any:
        return {"@call": self.name, "args": [arg.to_wire() for arg in self.args]}


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>//[^\r\n]*|/\*.*?\*/)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
    |(?P<punct>[()\[\]{},:])
    """,
    re.VERBOSE | re.DOTALL,
)

_CALL_NAME_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")

_KEYWORDS = {"true": True, "false": False, "null": None}

_CLOSING = {"(": ")", "[": "]", "{": "}"}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0"}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int  # 1-based offset into the source


def _unescape(body: str) -> str:
    def replace(match):
        escape = match.group(1)
        if escape.startswith("u") and len(escape) == 5:
            return chr(int(escape[1:], 16))
        return _ESCAPES.get(escape, escape)

    return re.sub(r"\\(u[0-9a-fA-F]{4}|.)", replace, body, flags=re.DOTALL)


def tokenize(source: str) -> List[Token]:
    """Split a snippet into tokens, dropping whitespace and comments."""
    tokens = []
    position = 0
    while position < len(source):
        match = _TOKEN_RE.match(source, position)
        if match is None:
            if source.startswith("/*", position):
                raise ExpressionError("Unterminated block comment", position + 1)
            if source[position] in "\"'":
                raise ExpressionError("Unterminated string", position + 1)
            raise ExpressionError(
                f"Unexpected character {source[position]!r}", position + 1
            )
        kind = match.lastgroup
        if kind not in ("ws", "comment"):
            tokens.append(Token(kind, match.group(), position + 1))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def expect_close(self, opener: Token) -> None:
        token = self.peek()
        closing = _CLOSING[opener.text]
        if token is None:
            raise ExpressionError(
                f"Unclosed bracket {opener.text} at position: {opener.position}",
                opener.position,
            )
        if token.text not in ")]}":
            raise ExpressionError(
                f"Expected `{closing}` or `,` at position: {token.position}",
                token.position,
            )
        if token.text != closing:
            raise ExpressionError(
                f"Unexpected closing bracket {token.text} at position: {token.position}",
                token.position,
            )
        self.advance()

    def _separated(self, opener: Token, parse_item) -> list:
        """Parse ``item (, item)* [,]`` up to the matching closing bracket."""
        items = []
        closing = _CLOSING[opener.text]
        while True:
            token = self.peek()
            if token is None or token.text == closing or token.text in ")]}":
                break
            items.append(parse_item())
            token = self.peek()
            if token is not None and token.text == ",":
                self.advance()
                continue
            break
        self.expect_close(opener)
        return items

    def parse_expr(self) -> Expr:
        token = self.peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")

        if token.kind == "string":
            self.advance()
            return Literal(_unescape(token.text[1:-1]))

        if token.kind == "number":
            self.advance()
            if re.search(r"[.eE]", token.text):
                return Literal(float(token.text))
            return Literal(int(token.text))

        if token.kind == "ident":
            return self.parse_identifier()

        if token.text == "[":
            opener = self.advance()
            return ArrayExpr(tuple(self._separated(opener, self.parse_expr)))

        if token.text == "{":
            opener = self.advance()
            return ObjectExpr(tuple(self._separated(opener, self.parse_entry)))

        if token.text in ")]}":
            raise ExpressionError(
                f"Unexpected closing bracket {token.text} at position: {token.position}",
                token.position,
            )
        raise ExpressionError(
            f"Unexpected token {token.text!r} at position: {token.position}",
            token.position,
        )

    def parse_identifier(self) -> Expr:
        token = self.advance()
        if token.text in _KEYWORDS:
            return Literal(_KEYWORDS[token.text])

        following = self.peek()
        if following is None or following.text != "(":
            raise ExpressionError(
                f"Bare identifier `{token.text}` at position: {token.position}",
                token.position,
            )
        if not _CALL_NAME_RE.match(token.text):
            raise ExpressionError(
                f"Unknown function `{token.text}` at position: {token.position}",
                token.position,
            )

        opener = self.advance()
        return Call(token.text, tuple(self._separated(opener, self.parse_expr)))

    def parse_entry(self) -> Tuple[str, Expr]:
        token = self.peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        if token.kind == "string":
            key = _unescape(token.text[1:-1])
        elif token.kind == "ident":
            key = token.text
        else:
            raise ExpressionError(
                f"Invalid object key {token.text!r} at position: {token.position}",
                token.position,
            )
        self.advance()

        colon = self.peek()
        if colon is None or colon.text != ":":
            raise ExpressionError(f"Expected `:` after object key `{key}`", token.position)
        self.advance()
        return key, self.parse_expr()


def parse_expression(source: str) -> Expr:
    """Parse exactly one expression."""
    parser = _Parser(tokenize(source))
    expr = parser.parse_expr()
    leftover = parser.peek()
    if leftover is not None:
        raise ExpressionError(
            f"Unexpected token {leftover.text!r} at position: {leftover.position}",
            leftover.position,
        )
    return expr


def parse_lambda(source: str) -> Call:
    """
    Parse a snippet holding one top-level ``Lambda``.

    The snippet may already be wrapped in ``Query(...)``; the result is always
    ``Query(Lambda(...))``.

    Raises:
        ExpressionError: If the text is not exactly one well-formed Lambda
    """
    tokens = tokenize(source)
    if not tokens:
        raise ExpressionError("FQL must have 1 `Lambda` query")

    parser = _Parser(tokens)
    expr = parser.parse_expr()
    if parser.peek() is not None:
        raise ExpressionError("FQL must have 1 `Lambda` query")

    if isinstance(expr, Call) and expr.name == "Query" and len(expr.args) == 1:
        expr = expr.args[0]
    if not isinstance(expr, Call) or expr.name != "Lambda":
        raise ExpressionError("FQL must have 1 `Lambda` query")
    return Call("Query", (expr,))
