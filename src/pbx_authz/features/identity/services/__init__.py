"""Identity services."""

from .token_validator import TokenValidator, TokenClaims
from .identity_resolver import IdentityResolver

__all__ = ["TokenValidator", "TokenClaims", "IdentityResolver"]
