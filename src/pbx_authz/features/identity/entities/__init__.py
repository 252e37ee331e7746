"""Identity entities and store protocols."""

from .principal import Principal, CredentialMaterial, AuthMethod
from .records import UserRecord, SessionRecord
from .protocols import UserStore, SessionStore

__all__ = [
    "Principal",
    "CredentialMaterial",
    "AuthMethod",
    "UserRecord",
    "SessionRecord",
    "UserStore",
    "SessionStore",
]
