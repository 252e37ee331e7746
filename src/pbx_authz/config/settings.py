"""Runtime settings for pbx-authz.

All values can be supplied through ``PBX_AUTHZ_*`` environment variables or a
``.env`` file.
"""

import ipaddress
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me-in-production"


class AuditOverflowPolicy(str, Enum):
    """What to do with an audit event when the delivery queue is full."""
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
    BLOCK = "block"


class AuthzSettings(BaseSettings):
    """Settings for the authorization pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="PBX_AUTHZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Token validation
    jwt_secret: SecretStr = Field(default=SecretStr(DEFAULT_JWT_SECRET))
    jwt_algorithm: str = Field(default="HS256")
    jwt_issuer: Optional[str] = Field(default=None)
    jwt_audience: Optional[str] = Field(default=None)
    jwt_leeway_seconds: int = Field(default=0, ge=0)

    # Credential transport
    session_cookie_name: str = Field(default="pbx_session")
    session_header_name: str = Field(default="X-Session-Id")

    # Proxies whose X-Forwarded-For / X-Real-IP headers are believed
    trusted_proxies: List[str] = Field(default_factory=list)

    # Store access
    identity_timeout_seconds: float = Field(default=1.5, gt=0)
    store_timeout_seconds: float = Field(default=2.0, gt=0)

    # Role checks
    bypass_role: Optional[str] = Field(default="superadmin")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_sweep_interval_seconds: float = Field(default=300.0, gt=0)
    rate_limit_grace_seconds: float = Field(default=60.0, ge=0)
    rate_limit_shards: int = Field(default=16, ge=1)
    rate_limit_warning_ratio: float = Field(default=0.8, gt=0, le=1)

    # Audit delivery
    audit_queue_size: int = Field(default=1000, ge=1)
    audit_overflow_policy: AuditOverflowPolicy = Field(default=AuditOverflowPolicy.DROP_OLDEST)
    audit_put_timeout_seconds: float = Field(default=0.5, gt=0)
    audit_drain_timeout_seconds: float = Field(default=5.0, gt=0)

    # Policy context
    business_hours_start: int = Field(default=9, ge=0, le=23)
    business_hours_end: int = Field(default=18, ge=1, le=24)
    timezone: str = Field(default="UTC")

    # Sensitive operations
    sensitive_max_risk_score: int = Field(default=90, ge=0, le=100)
    require_explicit_policy_for_sensitive: bool = Field(default=True)

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_algorithm(cls, value: str) -> str:
        """Reject the unsigned algorithm."""
        if value.lower() == "none":
            raise ValueError("jwt_algorithm 'none' is not allowed")
        return value

    @field_validator("trusted_proxies")
    @classmethod
    def validate_trusted_proxies(cls, value: List[str]) -> List[str]:
        """Each entry must be an address or CIDR range."""
        for entry in value:
            try:
                ipaddress.ip_network(entry, strict=False)
            except ValueError as e:
                raise ValueError(f"Invalid trusted proxy '{entry}': {e}") from e
        return value

    @model_validator(mode="after")
    def validate_business_hours(self) -> "AuthzSettings":
        """Business hours must be a non-empty range."""
        if self.business_hours_start >= self.business_hours_end:
            raise ValueError("business_hours_start must be before business_hours_end")
        return self

    @property
    def uses_default_jwt_secret(self) -> bool:
        return self.jwt_secret.get_secret_value() == DEFAULT_JWT_SECRET


@lru_cache()
def get_settings() -> AuthzSettings:
    """Get cached settings instance."""
    return AuthzSettings()
