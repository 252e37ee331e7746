"""Effective access value object produced by role hierarchy resolution."""

from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True)
class EffectiveAccess:
    """Roles and permissions a principal effectively holds for one request."""

    assigned_roles: FrozenSet[str]
    roles: FrozenSet[str]
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_bypass: bool = False

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def inherited_roles(self) -> FrozenSet[str]:
        """Roles held only through inheritance."""
        return self.roles - self.assigned_roles
