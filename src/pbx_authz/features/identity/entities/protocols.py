"""Protocol interfaces for the identity feature.

User and session storage live outside this library; the resolver only needs
these narrow read paths plus a best-effort activity touch.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from .records import SessionRecord, UserRecord


@runtime_checkable
class UserStore(Protocol):
    """Read access to user records."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Return the user record, or None if the user does not exist."""
        ...

    @abstractmethod
    async def touch_last_activity(self, user_id: str, at: datetime) -> None:
        """Record the user's latest activity time."""
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Read access to server-side sessions."""

    @abstractmethod
    async def get_session(self, handle: str) -> Optional[SessionRecord]:
        """Return the session for an opaque handle, or None if unknown."""
        ...
