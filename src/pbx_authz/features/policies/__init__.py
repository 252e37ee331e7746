"""Policies feature for pbx-authz.

- entities/: policies, evaluation context and results
- conditions/: the condition language (parser, tree, interpreter, lint)
- services/: the policy engine
- repositories/: policy and attribute store implementations
"""

from .entities import (
    Policy,
    PolicyEffect,
    PolicyType,
    PolicyStatus,
    PolicyPriority,
    UserAttributes,
    ResourceAttributes,
    EnvironmentAttributes,
    PolicyEvaluationContext,
    Decision,
    PolicyOutcome,
    PolicyEvaluationResult,
    PolicyStore,
    AttributeStore,
)
from .conditions import ConditionEvaluator, parse_condition, lint_condition
from .services import PolicyEngine, calculate_risk_score
from .repositories import InMemoryPolicyStore, InMemoryAttributeStore

__all__ = [
    # Entities
    "Policy",
    "PolicyEffect",
    "PolicyType",
    "PolicyStatus",
    "PolicyPriority",
    "UserAttributes",
    "ResourceAttributes",
    "EnvironmentAttributes",
    "PolicyEvaluationContext",
    "Decision",
    "PolicyOutcome",
    "PolicyEvaluationResult",

    # Protocols
    "PolicyStore",
    "AttributeStore",

    # Conditions
    "ConditionEvaluator",
    "parse_condition",
    "lint_condition",

    # Services
    "PolicyEngine",
    "calculate_risk_score",

    # Repository Implementations
    "InMemoryPolicyStore",
    "InMemoryAttributeStore",
]
