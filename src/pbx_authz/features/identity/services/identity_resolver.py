"""Identity resolution service.

Credentials are tried in a fixed order: a session handle first, then a bearer
token. When a session handle is present but invalid the request fails; the
resolver only looks at the bearer token when no session handle was sent.

Whatever the credential form, the principal is built from the user record as
it is stored now, so revoked roles and deactivated users take effect
immediately.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Set

from ....core.exceptions import Unauthenticated
from ..entities import (
    AuthMethod,
    CredentialMaterial,
    Principal,
    SessionStore,
    UserRecord,
    UserStore,
)
from .token_validator import TokenValidator

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Turns request credentials into a ``Principal``."""

    def __init__(
        self,
        user_store: UserStore,
        token_validator: Optional[TokenValidator] = None,
        session_store: Optional[SessionStore] = None,
        timeout: float = 1.5,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._user_store = user_store
        self._token_validator = token_validator
        self._session_store = session_store
        self._timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._background_tasks: Set[asyncio.Task] = set()

    async def resolve(self, credentials: CredentialMaterial) -> Principal:
        """Resolve credentials to a principal.

        Raises:
            Unauthenticated: for every failure, including store timeouts
        """
        try:
            return await asyncio.wait_for(self._resolve(credentials), timeout=self._timeout)
        except Unauthenticated as e:
            logger.warning(f"Authentication failed: {e.reason}")
            raise
        except asyncio.TimeoutError as e:
            logger.warning(f"Identity lookup timed out after {self._timeout}s")
            raise Unauthenticated("identity_timeout") from e
        except Exception as e:
            logger.error(f"Identity lookup failed: {e}")
            raise Unauthenticated("identity_store_error", {"error": str(e)}) from e

    async def _resolve(self, credentials: CredentialMaterial) -> Principal:
        if credentials.session_handle:
            return await self._resolve_session(credentials.session_handle)
        if credentials.bearer_token:
            return await self._resolve_token(credentials.bearer_token)
        raise Unauthenticated("missing_credentials")

    async def _resolve_session(self, handle: str) -> Principal:
        if self._session_store is None:
            raise Unauthenticated("session_auth_unavailable")

        session = await self._session_store.get_session(handle)
        if session is None:
            raise Unauthenticated("session_not_found")
        if session.is_expired(self._clock()):
            raise Unauthenticated("session_expired", {"session_id": session.session_id})

        user = await self._load_user(session.user_id, session.domain_id)
        return self._build_principal(
            user,
            auth_method=AuthMethod.SESSION,
            issued_at=session.created_at,
            expires_at=session.expires_at,
            session_id=session.session_id,
        )

    async def _resolve_token(self, token: str) -> Principal:
        if self._token_validator is None:
            raise Unauthenticated("token_auth_unavailable")

        claims = self._token_validator.validate(token)
        user = await self._load_user(claims.subject, claims.domain_id)
        return self._build_principal(
            user,
            auth_method=AuthMethod.JWT,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
            session_id=claims.session_id,
        )

    async def _load_user(self, user_id: str, claimed_domain: Optional[str]) -> UserRecord:
        user = await self._user_store.get_user(user_id)
        if user is None:
            raise Unauthenticated("user_not_found", {"user_id": user_id})
        if not user.is_active:
            raise Unauthenticated("user_inactive", {"user_id": user_id})
        if claimed_domain and user.domain_id and claimed_domain != user.domain_id:
            raise Unauthenticated(
                "domain_mismatch",
                {"user_id": user_id, "claimed_domain": claimed_domain, "stored_domain": user.domain_id},
            )

        self._touch_last_activity(user.id)
        return user

    def _build_principal(self, user: UserRecord, **credential_metadata) -> Principal:
        return Principal(
            id=user.id,
            username=user.username,
            domain_id=user.domain_id,
            domains=user.domains,
            roles=user.roles,
            permissions=user.permissions,
            primary_role=user.primary_role,
            email=user.email,
            **credential_metadata,
        )

    def _touch_last_activity(self, user_id: str) -> None:
        task = asyncio.create_task(self._user_store.touch_last_activity(user_id, self._clock()))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_touch_done)

    def _on_touch_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Failed to update last activity: {error}")

    async def drain(self) -> None:
        """Wait for pending last-activity updates."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
