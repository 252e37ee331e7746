"""Records returned by the user and session stores."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class UserRecord:
    """Current state of a user as held by the user store."""

    id: str
    username: str
    domain_id: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True
    domains: FrozenSet[str] = field(default_factory=frozenset)
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    primary_role: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("domains", "roles", "permissions"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))


@dataclass(frozen=True)
class SessionRecord:
    """Server-side session as held by the session store."""

    session_id: str
    user_id: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    domain_id: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at
