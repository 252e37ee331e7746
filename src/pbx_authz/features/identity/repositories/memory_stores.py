"""In-memory user and session stores for development and tests."""

from datetime import datetime
from typing import Dict, Iterable, Optional

from ..entities import SessionRecord, UserRecord


class InMemoryUserStore:
    """User store backed by a dictionary."""

    def __init__(self, users: Optional[Iterable[UserRecord]] = None):
        self._users: Dict[str, UserRecord] = {user.id: user for user in users or ()}
        self.last_activity: Dict[str, datetime] = {}

    def add(self, user: UserRecord) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def touch_last_activity(self, user_id: str, at: datetime) -> None:
        self.last_activity[user_id] = at


class InMemorySessionStore:
    """Session store backed by a dictionary keyed by session handle."""

    def __init__(self):
        self._sessions: Dict[str, SessionRecord] = {}

    def add(self, handle: str, session: SessionRecord) -> None:
        self._sessions[handle] = session

    def revoke(self, handle: str) -> None:
        self._sessions.pop(handle, None)

    async def get_session(self, handle: str) -> Optional[SessionRecord]:
        return self._sessions.get(handle)
