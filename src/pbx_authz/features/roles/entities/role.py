"""Role domain entity for the roles feature."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from ....config.constants import RoleLevel


@dataclass(frozen=True)
class Role:
    """Role definition as stored by administrators.

    ``level`` is an ordinal rank where lower means more privileged.
    ``parent_name`` links roles into a forest; the links are validated for
    cycles when definitions are loaded.
    """

    name: str
    level: int = RoleLevel.USER.value
    id: Optional[str] = None
    parent_name: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    domain_id: Optional[str] = None
    is_active: bool = True
    description: Optional[str] = None

    def __post_init__(self):
        # Accept any iterable of permission strings
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions))

    @property
    def is_global(self) -> bool:
        return self.domain_id is None

    def applies_to_domain(self, domain_id: Optional[str]) -> bool:
        """Global roles apply everywhere, scoped roles only in their domain."""
        return self.domain_id is None or self.domain_id == domain_id

    def is_more_privileged_than(self, other: "Role") -> bool:
        return self.level < other.level
