"""In-memory role store."""

from typing import Iterable, List, Optional

from ..entities import Role


class InMemoryRoleStore:
    """Role store backed by a list, for development and tests."""

    def __init__(self, roles: Optional[Iterable[Role]] = None):
        self._roles: List[Role] = list(roles or ())

    async def list_roles(self) -> List[Role]:
        return list(self._roles)

    def upsert(self, role: Role) -> None:
        """Replace the role with the same name (and domain) or add it."""
        self._roles = [
            existing for existing in self._roles
            if not (existing.name == role.name and existing.domain_id == role.domain_id)
        ]
        self._roles.append(role)
