"""Per-request attribute context for policy evaluation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from ....config.constants import DataClassification, DeviceType, Sensitivity


@dataclass(frozen=True)
class UserAttributes:
    """Attributes of the requesting principal."""

    id: str
    username: str
    domain_id: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    primary_role: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceAttributes:
    """Attributes of the resource being accessed."""

    type: str
    id: Optional[str] = None
    owner_id: Optional[str] = None
    domain_id: Optional[str] = None
    data_classification: DataClassification = DataClassification.PUBLIC
    sensitivity: Sensitivity = Sensitivity.LOW
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EnvironmentAttributes:
    """Attributes of the request environment."""

    current_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: DeviceType = DeviceType.DESKTOP
    timezone: str = "UTC"
    is_business_hours: bool = True
    auth_method: Optional[str] = None
    session_age_seconds: Optional[float] = None
    risk_score: int = 0
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyEvaluationContext:
    """Everything a policy condition can see for one evaluation."""

    user: UserAttributes
    resource: ResourceAttributes
    environment: EnvironmentAttributes
    action: str
