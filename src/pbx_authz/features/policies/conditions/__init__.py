"""Policy condition language: parser, expression tree and interpreter."""

from .nodes import Node, iter_nodes
from .parser import ConditionParser, parse_condition, tokenize
from .evaluator import ConditionEvaluator, resolve_attribute, ip_in_ranges, to_snake_case
from .lint import lint_condition

__all__ = [
    "Node",
    "iter_nodes",
    "ConditionParser",
    "parse_condition",
    "tokenize",
    "ConditionEvaluator",
    "resolve_attribute",
    "ip_in_ranges",
    "to_snake_case",
    "lint_condition",
]
