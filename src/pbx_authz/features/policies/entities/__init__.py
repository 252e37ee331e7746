"""Policy entities, evaluation context and store protocols."""

from .policy import Policy, PolicyEffect, PolicyType, PolicyStatus, PolicyPriority
from .context import (
    UserAttributes,
    ResourceAttributes,
    EnvironmentAttributes,
    PolicyEvaluationContext,
)
from .result import Decision, PolicyOutcome, PolicyEvaluationResult
from .protocols import PolicyStore, AttributeStore

__all__ = [
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
    "PolicyStore",
    "AttributeStore",
]
