"""Authoring feedback for policy conditions.

At request time a malformed condition simply never matches. ``lint_condition``
reports the problems to policy authors instead, for use in admin tooling
before a policy is saved.
"""

from dataclasses import fields
from typing import List

from ....core.exceptions import ConditionSyntaxError
from ..entities import EnvironmentAttributes, ResourceAttributes, UserAttributes
from .evaluator import ATTRIBUTE_ALIASES, to_snake_case
from .nodes import AttributeRef, Literal, Truthy, iter_nodes
from .parser import parse_condition

_KNOWN_FIELDS = {
    "user": {f.name for f in fields(UserAttributes)},
    "resource": {f.name for f in fields(ResourceAttributes)},
    "environment": {f.name for f in fields(EnvironmentAttributes)},
}


def lint_condition(text: str) -> List[str]:
    """Return a list of problems found in a condition (empty when clean)."""
    try:
        tree = parse_condition(text)
    except ConditionSyntaxError as e:
        position = f" at position {e.position}" if e.position is not None else ""
        return [f"Syntax error{position}: {e.message}"]

    problems: List[str] = []
    if isinstance(tree, Literal) or (isinstance(tree, Truthy) and isinstance(tree.operand, Literal)):
        if text.strip():
            problems.append("Condition is constant and does not depend on the request")

    for node in iter_nodes(tree):
        if not isinstance(node, AttributeRef):
            continue
        if node.root == "action":
            if node.path:
                problems.append(f"'{node.dotted}': action has no attributes")
            continue
        if not node.path:
            problems.append(f"'{node.root}' must be followed by an attribute name")
            continue
        first = to_snake_case(node.path[0])
        first = ATTRIBUTE_ALIASES.get(first, first)
        if first not in _KNOWN_FIELDS[node.root]:
            problems.append(
                f"'{node.dotted}' is not a built-in attribute and is looked up in {node.root}.attributes"
            )
    return problems
