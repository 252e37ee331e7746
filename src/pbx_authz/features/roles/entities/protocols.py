"""Protocol interfaces for the roles feature."""

from abc import abstractmethod
from typing import List, Protocol, runtime_checkable

from .role import Role


@runtime_checkable
class RoleStore(Protocol):
    """Read access to role definitions."""

    @abstractmethod
    async def list_roles(self) -> List[Role]:
        """Return every role definition."""
        ...
