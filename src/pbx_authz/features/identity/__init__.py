"""Identity feature for pbx-authz.

Validates a session handle or bearer token and resolves the canonical
``Principal`` for a request.
"""

from .entities import (
    Principal,
    CredentialMaterial,
    AuthMethod,
    UserRecord,
    SessionRecord,
    UserStore,
    SessionStore,
)
from .services import TokenValidator, TokenClaims, IdentityResolver
from .repositories import InMemoryUserStore, InMemorySessionStore

__all__ = [
    # Entities
    "Principal",
    "CredentialMaterial",
    "AuthMethod",
    "UserRecord",
    "SessionRecord",

    # Protocols
    "UserStore",
    "SessionStore",

    # Services
    "TokenValidator",
    "TokenClaims",
    "IdentityResolver",

    # Repository Implementations
    "InMemoryUserStore",
    "InMemorySessionStore",
]
