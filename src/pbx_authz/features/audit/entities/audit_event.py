"""Audit event entity.

All decision types share one envelope (actor, resource, request, risk,
timestamp); the factory classmethods give each decision type its own action,
result and metadata shape.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4


class AuditAction(str, Enum):
    """Audited access-decision actions."""
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"
    RATE_LIMIT_WARNING = "rate_limit_warning"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    POLICY_EVALUATED = "policy_evaluated"
    SENSITIVE_OPERATION = "sensitive_operation"


class AuditResult(str, Enum):
    """Outcome recorded on an audit event."""
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    WARNING = "warning"


class RiskLevel(str, Enum):
    """Coarse risk level derived from a 0-100 risk score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def from_score(cls, score: Optional[int]) -> "RiskLevel":
        if score is None or score < 25:
            return cls.LOW
        if score < 50:
            return cls.MEDIUM
        if score < 75:
            return cls.HIGH
        return cls.CRITICAL


# Error kinds that indicate a failure of the pipeline rather than a denial
_ERROR_KINDS = {"AuthorizationCheckFailed", "PolicyEvaluationError"}


@dataclass(frozen=True)
class AuditEvent:
    """Immutable record of one access decision."""

    action: AuditAction
    result: AuditResult
    actor_id: Optional[str] = None
    actor_username: Optional[str] = None
    domain_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    request_method: Optional[str] = None
    request_path: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    risk_score: Optional[int] = None
    risk_level: RiskLevel = RiskLevel.LOW
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serializable representation for sinks."""
        data = asdict(self)
        data["action"] = self.action.value
        data["result"] = self.result.value
        data["risk_level"] = self.risk_level.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def access_granted(
        cls,
        risk_score: int = 0,
        deciding_policy: Optional[str] = None,
        obligations: Optional[Dict[str, Any]] = None,
        **envelope,
    ) -> "AuditEvent":
        return cls(
            action=AuditAction.ACCESS_GRANTED,
            result=AuditResult.SUCCESS,
            risk_score=risk_score,
            risk_level=RiskLevel.from_score(risk_score),
            metadata={"deciding_policy": deciding_policy, "obligations": dict(obligations or {})},
            **envelope,
        )

    @classmethod
    def access_denied(
        cls,
        error_kind: str,
        reason: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        risk_score: Optional[int] = None,
        **envelope,
    ) -> "AuditEvent":
        return cls(
            action=AuditAction.ACCESS_DENIED,
            result=AuditResult.ERROR if error_kind in _ERROR_KINDS else AuditResult.FAILURE,
            reason=reason,
            risk_score=risk_score,
            risk_level=RiskLevel.from_score(risk_score) if risk_score is not None else RiskLevel.MEDIUM,
            metadata={"error_kind": error_kind, "stage": stage, "details": dict(details or {})},
            **envelope,
        )

    @classmethod
    def rate_limit_warning(cls, count: int, limit: int, window_ms: int, tier: str, **envelope) -> "AuditEvent":
        return cls(
            action=AuditAction.RATE_LIMIT_WARNING,
            result=AuditResult.WARNING,
            risk_level=RiskLevel.LOW,
            reason=f"{count}/{limit} requests used",
            metadata={"count": count, "limit": limit, "window_ms": window_ms, "tier": tier},
            **envelope,
        )

    @classmethod
    def rate_limit_exceeded(
        cls,
        limit: int,
        window_ms: int,
        retry_after: int,
        tier: Optional[str] = None,
        **envelope,
    ) -> "AuditEvent":
        return cls(
            action=AuditAction.RATE_LIMIT_EXCEEDED,
            result=AuditResult.FAILURE,
            risk_level=RiskLevel.MEDIUM,
            reason="Rate limit exceeded",
            metadata={"limit": limit, "window_ms": window_ms, "retry_after": retry_after, "tier": tier},
            **envelope,
        )

    @classmethod
    def policy_evaluated(
        cls,
        decision: str,
        applied_policies: List[str],
        risk_score: int,
        evaluation_time_ms: float,
        reason: Optional[str] = None,
        **envelope,
    ) -> "AuditEvent":
        return cls(
            action=AuditAction.POLICY_EVALUATED,
            result=AuditResult.SUCCESS if decision == "ALLOW" else AuditResult.FAILURE,
            risk_score=risk_score,
            risk_level=RiskLevel.from_score(risk_score),
            reason=reason,
            metadata={
                "decision": decision,
                "applied_policies": list(applied_policies),
                "evaluation_time_ms": round(evaluation_time_ms, 3),
            },
            **envelope,
        )

    @classmethod
    def sensitive_operation(cls, risk_score: Optional[int] = None, **envelope) -> "AuditEvent":
        return cls(
            action=AuditAction.SENSITIVE_OPERATION,
            result=AuditResult.SUCCESS,
            risk_score=risk_score,
            risk_level=RiskLevel.HIGH,
            reason="Sensitive operation requested",
            **envelope,
        )
