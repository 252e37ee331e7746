"""Expression tree for policy conditions.

Every node is an immutable dataclass. Conditions are parsed once into this
tree and interpreted by ``ConditionEvaluator``; nothing in a condition string
is ever executed as code.
"""

from dataclasses import dataclass
from datetime import time
from typing import Any, FrozenSet, Tuple, Union


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ListLiteral:
    items: Tuple["Node", ...]


@dataclass(frozen=True)
class AttributeRef:
    """Dotted path rooted at ``user``, ``resource``, ``environment`` or ``action``."""

    root: str
    path: Tuple[str, ...] = ()

    @property
    def dotted(self) -> str:
        return ".".join((self.root,) + self.path)


@dataclass(frozen=True)
class Compare:
    """Equality or ordering comparison."""

    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Contains:
    """Membership test: ``item in container`` or ``container.includes(item)``."""

    container: "Node"
    item: "Node"
    negate: bool = False


@dataclass(frozen=True)
class StringTest:
    """``startsWith`` / ``endsWith`` test on a string operand."""

    op: str
    target: "Node"
    value: "Node"


@dataclass(frozen=True)
class HasRole:
    """True when the user holds any of the roles."""

    roles: Tuple[str, ...]


@dataclass(frozen=True)
class HasPermission:
    permission: str


@dataclass(frozen=True)
class TimeBetween:
    """Time-of-day range, wrapping past midnight when ``start > end``."""

    start: time
    end: time


@dataclass(frozen=True)
class DayOfWeek:
    """Day-of-week set, 0 = Sunday through 6 = Saturday."""

    days: FrozenSet[int]


@dataclass(frozen=True)
class IpInRange:
    """Client IP membership in CIDR ranges or exact addresses."""

    ranges: Tuple["Node", ...]
    target: "Node" = AttributeRef("environment", ("client_ip",))


@dataclass(frozen=True)
class HasAttribute:
    ref: AttributeRef


@dataclass(frozen=True)
class Truthy:
    operand: "Node"


@dataclass(frozen=True)
class And:
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


Node = Union[
    Literal,
    ListLiteral,
    AttributeRef,
    Compare,
    Contains,
    StringTest,
    HasRole,
    HasPermission,
    TimeBetween,
    DayOfWeek,
    IpInRange,
    HasAttribute,
    Truthy,
    And,
    Or,
    Not,
]


def iter_nodes(node: Node):
    """Yield ``node`` and all of its descendants."""
    yield node
    children: Tuple[Node, ...] = ()
    if isinstance(node, ListLiteral):
        children = node.items
    elif isinstance(node, Compare):
        children = (node.left, node.right)
    elif isinstance(node, Contains):
        children = (node.container, node.item)
    elif isinstance(node, StringTest):
        children = (node.target, node.value)
    elif isinstance(node, IpInRange):
        children = node.ranges + (node.target,)
    elif isinstance(node, HasAttribute):
        children = (node.ref,)
    elif isinstance(node, (Truthy, Not)):
        children = (node.operand,)
    elif isinstance(node, (And, Or)):
        children = node.operands
    for child in children:
        yield from iter_nodes(child)
