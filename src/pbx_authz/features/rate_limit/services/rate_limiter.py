"""Request rate limiting.

Limits are fixed windows with reset, an approximation of a sliding window: a
key's counter restarts once its window has elapsed rather than decaying
continuously.

The configuration for a request is chosen in this order:

1. an explicit per-route override;
2. an operation-class limit (sync, backup, sensitive, upload, login);
3. the limit for the principal's primary role;
4. the global default.

Failures in the bookkeeping itself admit the request. A genuine over-quota
state always rejects it.
"""

import logging
import math
from typing import Mapping, Optional, Tuple

from ....config.constants import (
    DEFAULT_RATE_LIMIT,
    OPERATION_RATE_LIMITS,
    ROLE_RATE_LIMITS,
    SENSITIVE_PATH_MARKERS,
    OperationClass,
)
from ....core.exceptions import RateLimitExceeded
from ..entities import RateLimitConfig, RateLimitDecision
from ..repositories import RateLimitStore

logger = logging.getLogger(__name__)


def classify_operation(method: str, path: str) -> Optional[str]:
    """Infer the operation class of a request from its method and path."""
    lowered = path.lower()
    if "/sync" in lowered:
        return OperationClass.SYNC.value
    if "/backup" in lowered:
        return OperationClass.BACKUP.value
    if method.upper() == "DELETE" or any(marker in lowered for marker in SENSITIVE_PATH_MARKERS):
        return OperationClass.SENSITIVE.value
    if "/upload" in lowered:
        return OperationClass.UPLOAD.value
    if "/login" in lowered:
        return OperationClass.LOGIN.value
    return None


def build_rate_limit_key(
    method: str,
    endpoint: str,
    principal_id: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> str:
    """Key counters by principal (or caller IP) plus method and endpoint."""
    identifier = principal_id or client_ip or "anonymous"
    return f"{identifier}:{method.upper()}:{endpoint}"


class RateLimiter:
    """Decides whether a request fits in its key's current window."""

    def __init__(
        self,
        store: RateLimitStore,
        role_limits: Optional[Mapping[str, Tuple[int, int]]] = None,
        operation_limits: Optional[Mapping[str, Tuple[int, int]]] = None,
        default_limit: Tuple[int, int] = DEFAULT_RATE_LIMIT,
        warning_ratio: float = 0.8,
        enabled: bool = True,
    ):
        self._store = store
        self._role_limits = {
            role: RateLimitConfig(window, maximum, f"role:{role}")
            for role, (window, maximum) in (role_limits if role_limits is not None else ROLE_RATE_LIMITS).items()
        }
        self._operation_limits = {
            name: RateLimitConfig(window, maximum, name)
            for name, (window, maximum) in (
                operation_limits if operation_limits is not None else OPERATION_RATE_LIMITS
            ).items()
        }
        self._default = RateLimitConfig(default_limit[0], default_limit[1], "default")
        self._warning_ratio = warning_ratio
        self.enabled = enabled

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def resolve_config(
        self,
        override: Optional[RateLimitConfig] = None,
        operation_class: Optional[str] = None,
        primary_role: Optional[str] = None,
    ) -> RateLimitConfig:
        """Pick the configuration that governs a request."""
        if override is not None:
            return override
        if operation_class and operation_class in self._operation_limits:
            return self._operation_limits[operation_class]
        if primary_role and primary_role in self._role_limits:
            return self._role_limits[primary_role]
        return self._default

    def check(self, key: str, config: RateLimitConfig) -> RateLimitDecision:
        """Count the request and decide. Never raises."""
        try:
            now_ms = self._store.now_ms()
            entry = self._store.hit(key, config, now_ms)
        except Exception as e:
            logger.error(f"Rate limit bookkeeping failed for {key}, admitting request: {e}")
            return RateLimitDecision(
                allowed=True,
                key=key,
                limit=config.max_requests,
                remaining=config.max_requests,
                count=0,
                config=config,
                degraded=True,
            )

        allowed = entry.count <= config.max_requests
        retry_after = 0
        if not allowed:
            retry_after = max(1, math.ceil((entry.window_end_ms - now_ms) / 1000))

        return RateLimitDecision(
            allowed=allowed,
            key=key,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - entry.count),
            count=entry.count,
            retry_after=retry_after,
            config=config,
            warning=allowed and entry.count > config.max_requests * self._warning_ratio,
        )

    def enforce(self, key: str, config: RateLimitConfig) -> RateLimitDecision:
        """Count the request and raise when it is over quota.

        Raises:
            RateLimitExceeded: with the seconds until the window resets
        """
        decision = self.check(key, config)
        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded for {key}: {decision.count}/{config.max_requests} "
                f"in {config.window_ms}ms ({config.name})"
            )
            raise self.exceeded_error(decision)
        if decision.warning:
            logger.info(f"Rate limit warning for {key}: {decision.count}/{config.max_requests}")
        return decision

    @staticmethod
    def exceeded_error(decision: RateLimitDecision) -> RateLimitExceeded:
        """Build the error for a rejected decision."""
        config = decision.config
        return RateLimitExceeded(
            retry_after=decision.retry_after,
            limit=decision.limit,
            window_ms=config.window_ms if config else 0,
            key=decision.key,
            details={"tier": config.name if config else None, "count": decision.count},
        )
