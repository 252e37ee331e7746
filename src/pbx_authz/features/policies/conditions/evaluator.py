"""Interpreter for parsed policy conditions."""

import ipaddress
import logging
import re
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from datetime import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Union

from ...roles.entities import permission_grants
from ..entities import PolicyEvaluationContext
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
from .parser import parse_condition

logger = logging.getLogger(__name__)

# Alternate attribute names accepted in conditions
ATTRIBUTE_ALIASES = {
    "ip_address": "client_ip",
    "ip": "client_ip",
    "owner": "owner_id",
    "classification": "data_classification",
}

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Convert ``domainId`` / ``clientIP`` style names to snake_case."""
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    return _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _resolve_segment(obj: Any, segment: str) -> Any:
    snake = to_snake_case(segment)
    snake = ATTRIBUTE_ALIASES.get(snake, snake)

    if isinstance(obj, Mapping):
        if segment in obj:
            return obj[segment]
        return obj.get(snake)

    if is_dataclass(obj) and not isinstance(obj, type):
        if snake in {f.name for f in fields(obj)}:
            return getattr(obj, snake)
        attributes = getattr(obj, "attributes", None)
        if isinstance(attributes, Mapping):
            if segment in attributes:
                return attributes[segment]
            return attributes.get(snake)
    return None


def resolve_attribute(ref: AttributeRef, context: PolicyEvaluationContext) -> Any:
    """Resolve a dotted attribute path against the evaluation context.

    Missing attributes resolve to None.
    """
    value: Any = getattr(context, ref.root)
    for segment in ref.path:
        if value is None:
            return None
        value = _resolve_segment(value, segment)
    return value


def ip_in_ranges(ip: Optional[str], ranges: Iterable[str]) -> bool:
    """Check an address against CIDR ranges or exact addresses.

    Invalid addresses or ranges never match.
    """
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False

    for candidate in ranges:
        try:
            if "/" in candidate:
                if address in ipaddress.ip_network(candidate, strict=False):
                    return True
            elif address == ipaddress.ip_address(candidate):
                return True
        except (TypeError, ValueError):
            logger.debug(f"Ignoring invalid IP range {candidate!r}")
    return False


class ConditionEvaluator:
    """Evaluates condition trees against a ``PolicyEvaluationContext``."""

    def __init__(self):
        self._handlers: Dict[type, Callable[[Any, PolicyEvaluationContext], Any]] = {
            Literal: self._literal,
            ListLiteral: self._list,
            AttributeRef: self._attribute,
            Compare: self._compare,
            Contains: self._contains,
            StringTest: self._string_test,
            HasRole: self._has_role,
            HasPermission: self._has_permission,
            TimeBetween: self._time_between,
            DayOfWeek: self._day_of_week,
            IpInRange: self._ip_in_range,
            HasAttribute: self._has_attribute,
            Truthy: self._truthy,
            And: self._and,
            Or: self._or,
            Not: self._not,
        }

    def evaluate(self, condition: Union[str, Node], context: PolicyEvaluationContext) -> bool:
        """Evaluate a condition string or tree.

        Raises:
            ConditionSyntaxError: if a condition string is malformed
        """
        node = parse_condition(condition) if isinstance(condition, str) else condition
        return bool(self._eval(node, context))

    def _eval(self, node: Node, context: PolicyEvaluationContext) -> Any:
        handler = self._handlers.get(type(node))
        if handler is None:
            raise TypeError(f"Unsupported condition node: {type(node).__name__}")
        return handler(node, context)

    def _literal(self, node: Literal, context: PolicyEvaluationContext) -> Any:
        return node.value

    def _list(self, node: ListLiteral, context: PolicyEvaluationContext) -> list:
        return [self._eval(item, context) for item in node.items]

    def _attribute(self, node: AttributeRef, context: PolicyEvaluationContext) -> Any:
        return resolve_attribute(node, context)

    def _compare(self, node: Compare, context: PolicyEvaluationContext) -> bool:
        left = _plain(self._eval(node.left, context))
        right = _plain(self._eval(node.right, context))
        if node.op == "==":
            return left == right
        if node.op == "!=":
            return left != right
        if left is None or right is None:
            return False
        if node.op == "<":
            return left < right
        if node.op == "<=":
            return left <= right
        if node.op == ">":
            return left > right
        if node.op == ">=":
            return left >= right
        raise ValueError(f"Unknown comparison operator {node.op!r}")

    def _contains(self, node: Contains, context: PolicyEvaluationContext) -> bool:
        container = self._eval(node.container, context)
        item = _plain(self._eval(node.item, context))

        if container is None:
            found = False
        elif isinstance(container, str):
            found = isinstance(item, str) and item in container
        elif isinstance(container, Mapping):
            found = item in container
        else:
            found = any(_plain(element) == item for element in container)
        return not found if node.negate else found

    def _string_test(self, node: StringTest, context: PolicyEvaluationContext) -> bool:
        target = _plain(self._eval(node.target, context))
        value = _plain(self._eval(node.value, context))
        if not isinstance(target, str) or not isinstance(value, str):
            return False
        if node.op == "startsWith":
            return target.startswith(value)
        return target.endswith(value)

    def _has_role(self, node: HasRole, context: PolicyEvaluationContext) -> bool:
        return any(role in context.user.roles for role in node.roles)

    def _has_permission(self, node: HasPermission, context: PolicyEvaluationContext) -> bool:
        return any(permission_grants(granted, node.permission) for granted in context.user.permissions)

    def _time_between(self, node: TimeBetween, context: PolicyEvaluationContext) -> bool:
        now = context.environment.current_time
        current = time(now.hour, now.minute)
        if node.start <= node.end:
            return node.start <= current <= node.end
        return current >= node.start or current <= node.end

    def _day_of_week(self, node: DayOfWeek, context: PolicyEvaluationContext) -> bool:
        # datetime.weekday() is Monday=0; conditions use Sunday=0
        day = (context.environment.current_time.weekday() + 1) % 7
        return day in node.days

    def _ip_in_range(self, node: IpInRange, context: PolicyEvaluationContext) -> bool:
        ip = _plain(self._eval(node.target, context))
        ranges = []
        for range_node in node.ranges:
            value = self._eval(range_node, context)
            if isinstance(value, str):
                ranges.append(value)
            elif isinstance(value, (list, tuple, set, frozenset)):
                ranges.extend(str(item) for item in value)
        return ip_in_ranges(ip, ranges)

    def _has_attribute(self, node: HasAttribute, context: PolicyEvaluationContext) -> bool:
        return resolve_attribute(node.ref, context) is not None

    def _truthy(self, node: Truthy, context: PolicyEvaluationContext) -> bool:
        return bool(self._eval(node.operand, context))

    def _and(self, node: And, context: PolicyEvaluationContext) -> bool:
        return all(self._eval(operand, context) for operand in node.operands)

    def _or(self, node: Or, context: PolicyEvaluationContext) -> bool:
        return any(self._eval(operand, context) for operand in node.operands)

    def _not(self, node: Not, context: PolicyEvaluationContext) -> bool:
        return not self._eval(node.operand, context)
