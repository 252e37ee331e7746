"""Guard request and decision entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ...identity.entities import CredentialMaterial, Principal
from ...policies.entities import PolicyEvaluationResult
from ...rate_limit.entities import RateLimitDecision
from ...roles.entities import EffectiveAccess


class PipelineState(str, Enum):
    """States a request passes through in the guard pipeline."""
    PUBLIC = "PUBLIC"
    AUTHENTICATING = "AUTHENTICATING"
    AUTHENTICATED = "AUTHENTICATED"
    AUTHORIZING_ROLE = "AUTHORIZING_ROLE"
    RATE_CHECKING = "RATE_CHECKING"
    AUTHORIZING_POLICY = "AUTHORIZING_POLICY"
    SECURITY_VALIDATING = "SECURITY_VALIDATING"
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class GuardRequest:
    """Framework-independent view of an inbound request."""

    method: str
    path: str
    route_path: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    credentials: CredentialMaterial = field(default_factory=CredentialMaterial)
    resource_id: Optional[str] = None
    domain_id: Optional[str] = None

    @property
    def endpoint(self) -> str:
        """Route template when known, else the concrete path."""
        return self.route_path or self.path


@dataclass
class GuardDecision:
    """Outcome of running the guard pipeline for one request."""

    allowed: bool
    state: PipelineState
    trace: List[PipelineState] = field(default_factory=list)
    principal: Optional[Principal] = None
    access: Optional[EffectiveAccess] = None
    policy_result: Optional[PolicyEvaluationResult] = None
    rate_limit: Optional[RateLimitDecision] = None
    error: Optional[Exception] = None

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    @property
    def obligations(self) -> Dict[str, Any]:
        if self.policy_result is None:
            return {}
        return dict(self.policy_result.obligations)
