"""Protocol interfaces for the policies feature."""

from abc import abstractmethod
from typing import Any, Dict, List, Protocol, Sequence, runtime_checkable

from .policy import Policy


@runtime_checkable
class PolicyStore(Protocol):
    """Access to policy definitions and their evaluation counters."""

    @abstractmethod
    async def list_active_policies(self) -> List[Policy]:
        """Return policies with ACTIVE status."""
        ...

    @abstractmethod
    async def record_evaluations(self, policies: Sequence[Policy]) -> None:
        """Persist the running counters of the given policies."""
        ...


@runtime_checkable
class AttributeStore(Protocol):
    """Read access to free-form user attributes."""

    @abstractmethod
    async def get_user_attributes(self, user_id: str) -> Dict[str, Any]:
        """Return attribute key/value pairs for a user."""
        ...
