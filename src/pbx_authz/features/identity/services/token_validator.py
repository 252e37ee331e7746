"""Bearer token validation service."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError as JWTInvalidTokenError,
)

from ....core.exceptions import Unauthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    """Claims of a validated bearer token that the resolver relies on."""

    subject: str
    username: str
    domain_id: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    session_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class TokenValidator:
    """Verifies signed bearer tokens with PyJWT.

    Only signature, expiry and the minimal payload shape are checked here.
    Roles and permissions embedded in the token are ignored; the resolver
    reloads them from the user store.
    """

    def __init__(
        self,
        secret: Union[str, bytes],
        algorithms: Optional[List[str]] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 0,
    ):
        self._secret = secret
        self._algorithms = algorithms or ["HS256"]
        self._issuer = issuer
        self._audience = audience
        self._leeway = leeway_seconds

    def validate(self, token: str) -> TokenClaims:
        """Decode and validate a bearer token.

        Raises:
            Unauthenticated: for any invalid, expired or malformed token
        """
        options = {
            "require": ["exp", "sub"],
            "verify_aud": self._audience is not None,
        }
        try:
            claims = jwt.decode(
                token,
                key=self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._leeway,
                options=options,
            )
        except ExpiredSignatureError as e:
            raise Unauthenticated("token_expired") from e
        except InvalidSignatureError as e:
            raise Unauthenticated("invalid_signature") from e
        except (InvalidAudienceError, InvalidIssuerError) as e:
            raise Unauthenticated("invalid_token_scope", {"error": str(e)}) from e
        except ImmatureSignatureError as e:
            raise Unauthenticated("token_not_yet_valid") from e
        except DecodeError as e:
            raise Unauthenticated("malformed_token") from e
        except JWTInvalidTokenError as e:
            raise Unauthenticated("invalid_token", {"error": str(e)}) from e

        subject = claims.get("sub")
        username = claims.get("username") or claims.get("preferred_username")
        if not subject or not username:
            raise Unauthenticated("invalid_token_payload")

        logger.debug(f"Token validated for subject {subject}")
        return TokenClaims(
            subject=str(subject),
            username=str(username),
            domain_id=claims.get("domain_id") or claims.get("domainId"),
            issued_at=_timestamp(claims.get("iat")),
            expires_at=_timestamp(claims.get("exp")),
            session_id=claims.get("sid") or claims.get("jti"),
            raw=claims,
        )
