"""Tokenizer and recursive-descent parser for policy conditions.

Grammar::

    expr        := or_expr
    or_expr     := and_expr (("||" | "or") and_expr)*
    and_expr    := not_expr (("&&" | "and") not_expr)*
    not_expr    := ("!" | "not") not_expr | primary
    primary     := "(" expr ")" | comparison
    comparison  := operand [compare_op operand | ["not"] "in" operand]
    compare_op  := "==" | "===" | "!=" | "!==" | "<" | "<=" | ">" | ">="
    operand     := path [method] | function | string | number | list
                 | "true" | "false" | "null"
    path        := ("user" | "resource" | "environment" | "action") ("." ident)*
    method      := "." ("includes" | "startsWith" | "endsWith") "(" operand ")"

Functions: ``hasRole``, ``hasAnyRole``, ``hasPermission``, ``contains``,
``startsWith``, ``endsWith``, ``timeBetween``, ``dayOfWeek``, ``ipInRange``
and ``hasAttribute``.
"""

import ipaddress
import re
from dataclasses import dataclass
from datetime import time
from functools import lru_cache
from typing import List, Optional, Tuple

from ....core.exceptions import ConditionSyntaxError
from .nodes import (
    And,
    AttributeRef,
    Compare,
    Contains,
    DayOfWeek,
    HasAttribute,
    HasPermission,
    HasRole,
    IpInRange,
    ListLiteral,
    Literal,
    Node,
    Not,
    Or,
    StringTest,
    TimeBetween,
    Truthy,
)

ROOTS = ("user", "resource", "environment", "action")
METHODS = ("includes", "startsWith", "endsWith")
COMPARE_OPS = {"==": "==", "===": "==", "!=": "!=", "!==": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}
KEYWORD_LITERALS = {"true": True, "True": True, "false": False, "False": False, "null": None, "None": None}

DAY_NAMES = {
    "sunday": 0, "sun": 0,
    "monday": 1, "mon": 1,
    "tuesday": 2, "tue": 2,
    "wednesday": 3, "wed": 3,
    "thursday": 4, "thu": 4,
    "friday": 5, "fri": 5,
    "saturday": 6, "sat": 6,
}

MAX_CONDITION_LENGTH = 4096

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!().,\[\]])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(text: str) -> List[Token]:
    """Split a condition into tokens."""
    tokens: List[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise ConditionSyntaxError(f"Unexpected character {text[position]!r}", text, position)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    tokens.append(Token("eof", "", len(text)))
    return tokens


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


def _parse_clock(value: str, text: str, position: int) -> time:
    match = re.fullmatch(r"(\d{1,2}):(\d{2})", value)
    if match is None:
        raise ConditionSyntaxError(f"Invalid time {value!r}, expected HH:MM", text, position)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConditionSyntaxError(f"Time out of range: {value!r}", text, position)
    return time(hour, minute)


def _validate_ip_range(value: str, text: str, position: int) -> None:
    try:
        if "/" in value:
            ipaddress.ip_network(value, strict=False)
        else:
            ipaddress.ip_address(value)
    except ValueError as e:
        raise ConditionSyntaxError(f"Invalid IP range {value!r}", text, position) from e


class ConditionParser:
    """Parses one condition string into an expression tree."""

    def __init__(self, text: str):
        if len(text) > MAX_CONDITION_LENGTH:
            raise ConditionSyntaxError("Condition is too long", text[:64] + "...")
        self._text = text
        self._tokens = tokenize(text)
        self._index = 0

    # Token helpers

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._index + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind != "eof":
            self._index += 1
        return token

    def _check(self, value: str) -> bool:
        token = self._peek()
        return token.kind in ("op", "ident") and token.value == value

    def _accept(self, *values: str) -> Optional[Token]:
        token = self._peek()
        if token.kind in ("op", "ident") and token.value in values:
            return self._advance()
        return None

    def _expect(self, value: str) -> Token:
        token = self._accept(value)
        if token is None:
            found = self._peek()
            raise self._error(f"Expected {value!r}, found {found.value or 'end of input'!r}", found)
        return token

    def _error(self, message: str, token: Optional[Token] = None) -> ConditionSyntaxError:
        token = token or self._peek()
        return ConditionSyntaxError(message, self._text, token.position)

    # Grammar

    def parse(self) -> Node:
        if not self._text.strip():
            return Literal(True)
        node = self._parse_or()
        if self._peek().kind != "eof":
            raise self._error(f"Unexpected token {self._peek().value!r}")
        return node

    def _parse_or(self) -> Node:
        operands = [self._parse_and()]
        while self._accept("||", "or"):
            operands.append(self._parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _parse_and(self) -> Node:
        operands = [self._parse_not()]
        while self._accept("&&", "and"):
            operands.append(self._parse_not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _parse_not(self) -> Node:
        if self._accept("!", "not"):
            return Not(self._parse_not())
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        if self._accept("("):
            node = self._parse_or()
            self._expect(")")
            return node
        return self._parse_comparison()

    def _parse_comparison(self) -> Node:
        left = self._parse_operand()
        token = self._peek()

        if token.kind == "op" and token.value in COMPARE_OPS:
            self._advance()
            return Compare(COMPARE_OPS[token.value], left, self._parse_operand())

        if self._check("in"):
            self._advance()
            return Contains(container=self._parse_operand(), item=left)

        if self._check("not") and self._peek(1).kind == "ident" and self._peek(1).value == "in":
            self._advance()
            self._advance()
            return Contains(container=self._parse_operand(), item=left, negate=True)

        if isinstance(left, (Contains, StringTest, HasRole, HasPermission, TimeBetween, DayOfWeek,
                             IpInRange, HasAttribute)):
            return left
        return Truthy(left)

    def _parse_operand(self) -> Node:
        token = self._peek()

        if token.kind == "string":
            self._advance()
            return Literal(_unquote(token.value))

        if token.kind == "number":
            self._advance()
            return Literal(float(token.value) if "." in token.value else int(token.value))

        if self._accept("["):
            items: List[Node] = []
            if not self._check("]"):
                items.append(self._parse_operand())
                while self._accept(","):
                    items.append(self._parse_operand())
            self._expect("]")
            return ListLiteral(tuple(items))

        if token.kind == "ident":
            if token.value in KEYWORD_LITERALS:
                self._advance()
                return Literal(KEYWORD_LITERALS[token.value])
            if token.value in ROOTS:
                return self._parse_path()
            if self._peek(1).kind == "op" and self._peek(1).value == "(":
                return self._parse_function()
            raise self._error(f"Unknown identifier {token.value!r}", token)

        raise self._error(f"Unexpected token {token.value or 'end of input'!r}", token)

    def _parse_path(self) -> Node:
        root = self._advance().value
        segments: List[str] = []
        while self._check("."):
            self._advance()
            segment = self._advance()
            if segment.kind != "ident":
                raise self._error("Expected attribute name after '.'", segment)

            if segment.value in METHODS and self._check("("):
                ref = AttributeRef(root, tuple(segments))
                self._advance()
                argument = self._parse_operand()
                self._expect(")")
                if segment.value == "includes":
                    return Contains(container=ref, item=argument)
                return StringTest(segment.value, ref, argument)

            segments.append(segment.value)
        return AttributeRef(root, tuple(segments))

    def _parse_arguments(self) -> List[Node]:
        self._expect("(")
        arguments: List[Node] = []
        if not self._check(")"):
            arguments.append(self._parse_operand())
            while self._accept(","):
                arguments.append(self._parse_operand())
        self._expect(")")
        return arguments

    def _string_arguments(self, name: str, arguments: List[Node], token: Token) -> Tuple[str, ...]:
        values: List[str] = []
        for argument in arguments:
            items = argument.items if isinstance(argument, ListLiteral) else (argument,)
            for item in items:
                if not isinstance(item, Literal) or not isinstance(item.value, str):
                    raise self._error(f"{name}() expects string literals", token)
                values.append(item.value)
        if not values:
            raise self._error(f"{name}() expects at least one argument", token)
        return tuple(values)

    def _parse_function(self) -> Node:
        token = self._advance()
        name = token.value
        arguments = self._parse_arguments()

        if name in ("hasRole", "hasAnyRole"):
            return HasRole(self._string_arguments(name, arguments, token))

        if name == "hasPermission":
            values = self._string_arguments(name, arguments, token)
            if len(values) != 1:
                raise self._error("hasPermission() expects one permission", token)
            return HasPermission(values[0])

        if name == "contains":
            if len(arguments) != 2:
                raise self._error("contains() expects two arguments", token)
            return Contains(container=arguments[0], item=arguments[1])

        if name in ("startsWith", "endsWith"):
            if len(arguments) != 2:
                raise self._error(f"{name}() expects two arguments", token)
            return StringTest(name, arguments[0], arguments[1])

        if name == "timeBetween":
            values = self._string_arguments(name, arguments, token)
            if len(values) != 2:
                raise self._error("timeBetween() expects a start and an end time", token)
            return TimeBetween(
                _parse_clock(values[0], self._text, token.position),
                _parse_clock(values[1], self._text, token.position),
            )

        if name == "dayOfWeek":
            return DayOfWeek(self._parse_days(arguments, token))

        if name == "ipInRange":
            if not arguments:
                raise self._error("ipInRange() expects at least one range", token)
            for argument in arguments:
                items = argument.items if isinstance(argument, ListLiteral) else (argument,)
                for item in items:
                    if isinstance(item, Literal):
                        if not isinstance(item.value, str):
                            raise self._error("ipInRange() expects strings", token)
                        _validate_ip_range(item.value, self._text, token.position)
                    elif not isinstance(item, AttributeRef):
                        raise self._error("ipInRange() expects string literals or attribute paths", token)
            return IpInRange(tuple(arguments))

        if name == "hasAttribute":
            if len(arguments) != 1 or not isinstance(arguments[0], AttributeRef) or not arguments[0].path:
                raise self._error("hasAttribute() expects an attribute path such as user.department", token)
            return HasAttribute(arguments[0])

        raise self._error(f"Unknown function {name!r}", token)

    def _parse_days(self, arguments: List[Node], token: Token) -> frozenset:
        days = set()
        for argument in arguments:
            items = argument.items if isinstance(argument, ListLiteral) else (argument,)
            for item in items:
                if not isinstance(item, Literal):
                    raise self._error("dayOfWeek() expects day numbers or names", token)
                value = item.value
                if isinstance(value, str) and value.lower() in DAY_NAMES:
                    days.add(DAY_NAMES[value.lower()])
                elif isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6:
                    days.add(value)
                else:
                    raise self._error(f"Invalid day {value!r}", token)
        if not days:
            raise self._error("dayOfWeek() expects at least one day", token)
        return frozenset(days)


@lru_cache(maxsize=1024)
def parse_condition(text: str) -> Node:
    """Parse a condition, caching trees by condition text.

    Raises:
        ConditionSyntaxError: if the condition is malformed
    """
    return ConditionParser(text).parse()
