"""Policy entity for attribute-based access control.

A policy combines a scope (domain, resources, actions), a condition written
in the policy condition language and an effect. Policies carry running
evaluation counters that are updated in place and persisted asynchronously.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

WILDCARD = "*"


class PolicyEffect(str, Enum):
    """Decision a matching policy contributes."""
    ALLOW = "ALLOW"
    DENY = "DENY"


class PolicyType(str, Enum):
    """Policy type enumeration."""
    RBAC = "RBAC"
    ABAC = "ABAC"
    HYBRID = "HYBRID"


class PolicyStatus(str, Enum):
    """Policy lifecycle status."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DRAFT = "DRAFT"
    DEPRECATED = "DEPRECATED"


class PolicyPriority(int, Enum):
    """Evaluation priority (lower values are evaluated first)."""
    CRITICAL = 0
    HIGH = 10
    MEDIUM = 50
    LOW = 100


def _scope_matches(scope: List[str], value: Optional[str]) -> bool:
    return not scope or WILDCARD in scope or value in scope


@dataclass
class Policy:
    """Attribute-based access policy."""

    name: str
    effect: PolicyEffect
    condition: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))
    description: Optional[str] = None
    type: PolicyType = PolicyType.ABAC
    status: PolicyStatus = PolicyStatus.ACTIVE
    priority: int = PolicyPriority.MEDIUM.value
    domain_id: Optional[str] = None
    resources: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)
    obligations: Dict[str, Any] = field(default_factory=dict)
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None

    # Running counters
    evaluation_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    error_count: int = 0
    last_evaluated: Optional[datetime] = None

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        """Active and inside the optional effective window."""
        if self.status != PolicyStatus.ACTIVE:
            return False
        now = now or datetime.now(timezone.utc)
        if self.effective_from is not None and now < self.effective_from:
            return False
        if self.effective_until is not None and now > self.effective_until:
            return False
        return True

    def applies_to(self, resource: Optional[str], action: Optional[str]) -> bool:
        """Resource and action lists match (empty or ``*`` matches all)."""
        return _scope_matches(self.resources, resource) and _scope_matches(self.actions, action)

    def applies_to_domain(self, domain_id: Optional[str]) -> bool:
        """Unscoped policies apply to every domain."""
        return self.domain_id is None or self.domain_id == domain_id

    def record_evaluation(self, matched: bool, now: Optional[datetime] = None, errored: bool = False) -> None:
        """Update running counters after one evaluation."""
        self.evaluation_count += 1
        self.last_evaluated = now or datetime.now(timezone.utc)
        if matched:
            self.success_count += 1
        else:
            self.failure_count += 1
        if errored:
            self.error_count += 1

    @property
    def counters(self) -> Dict[str, Any]:
        return {
            "evaluation_count": self.evaluation_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "error_count": self.error_count,
            "last_evaluated": self.last_evaluated,
        }

    @classmethod
    def time_based(
        cls,
        name: str,
        condition: str,
        effect: PolicyEffect,
        start: datetime,
        end: datetime,
        **kwargs,
    ) -> "Policy":
        """Policy that is only effective between ``start`` and ``end``."""
        return cls(name=name, condition=condition, effect=effect, effective_from=start, effective_until=end, **kwargs)

    @classmethod
    def for_domain(
        cls,
        name: str,
        domain_id: str,
        condition: str,
        resources: List[str],
        actions: List[str],
        effect: PolicyEffect = PolicyEffect.ALLOW,
        **kwargs,
    ) -> "Policy":
        """Policy scoped to one domain."""
        return cls(
            name=name,
            domain_id=domain_id,
            condition=condition,
            resources=list(resources),
            actions=list(actions),
            effect=effect,
            **kwargs,
        )

    def __str__(self) -> str:
        return f"Policy({self.name}, {self.effect.value}, priority={self.priority})"
