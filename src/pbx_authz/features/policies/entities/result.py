"""Policy evaluation results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .policy import PolicyEffect


class Decision(str, Enum):
    """Combined policy decision."""
    ALLOW = "ALLOW"
    DENY = "DENY"
    INDETERMINATE = "INDETERMINATE"


@dataclass(frozen=True)
class PolicyOutcome:
    """Result of evaluating one policy's condition."""

    policy_id: str
    policy_name: str
    effect: PolicyEffect
    matched: bool
    errored: bool = False
    reason: str = ""


@dataclass(frozen=True)
class PolicyEvaluationResult:
    """Combined result of evaluating every applicable policy."""

    decision: Decision
    reason: str
    risk_score: int = 0
    deciding_policy: Optional[str] = None
    applied_policies: List[str] = field(default_factory=list)
    outcomes: List[PolicyOutcome] = field(default_factory=list)
    obligations: Dict[str, Any] = field(default_factory=dict)
    evaluation_time_ms: float = 0.0

    @property
    def is_allowed(self) -> bool:
        return self.decision == Decision.ALLOW

    @property
    def is_denied(self) -> bool:
        return self.decision == Decision.DENY

    @property
    def is_indeterminate(self) -> bool:
        return self.decision == Decision.INDETERMINATE
