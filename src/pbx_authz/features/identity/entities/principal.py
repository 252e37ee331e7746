"""Principal entity: the resolved identity behind one request."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional


class AuthMethod(str, Enum):
    """How the principal authenticated."""
    SESSION = "SESSION"
    JWT = "JWT"


@dataclass(frozen=True)
class CredentialMaterial:
    """Credentials extracted from an inbound request.

    At most one form is used: a session handle takes priority over a bearer
    token whenever it is present.
    """

    bearer_token: Optional[str] = None
    session_handle: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.bearer_token and not self.session_handle


@dataclass(frozen=True)
class Principal:
    """Resolved identity for the current request.

    Built once by the identity resolver from the stored user record, never
    from token claims alone, and discarded when the request ends.
    """

    id: str
    username: str
    domain_id: Optional[str] = None
    # Extra domains the principal may address besides its own
    domains: FrozenSet[str] = field(default_factory=frozenset)
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    primary_role: Optional[str] = None
    email: Optional[str] = None

    # Credential metadata
    auth_method: AuthMethod = AuthMethod.JWT
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        for name in ("domains", "roles", "permissions"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))
        if self.primary_role is None and len(self.roles) == 1:
            object.__setattr__(self, "primary_role", next(iter(self.roles)))

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def session_age_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        """Seconds since the credential was issued, if known."""
        if self.issued_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(0.0, (now - self.issued_at).total_seconds())
