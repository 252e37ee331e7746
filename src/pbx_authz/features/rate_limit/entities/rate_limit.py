"""Rate limit value objects."""

from dataclasses import dataclass
from typing import Optional

from ....core.exceptions import ConfigurationError


@dataclass(frozen=True)
class RateLimitConfig:
    """Window size and request budget, tagged with the tier that produced it."""

    window_ms: int
    max_requests: int
    name: str = "default"

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ConfigurationError(f"Rate limit window must be positive, got {self.window_ms}")
        if self.max_requests <= 0:
            raise ConfigurationError(f"Rate limit max_requests must be positive, got {self.max_requests}")

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


@dataclass
class RateLimitEntry:
    """Fixed-window counter for one key.

    The window restarts (and the count drops to zero) once
    ``now - window_start_ms >= window_ms``.
    """

    key: str
    count: int
    window_start_ms: float
    window_ms: int
    max_requests: int

    @property
    def window_end_ms(self) -> float:
        return self.window_start_ms + self.window_ms

    def is_window_over(self, now_ms: float) -> bool:
        return now_ms - self.window_start_ms >= self.window_ms


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one rate limit check."""

    allowed: bool
    key: str
    limit: int
    remaining: int
    count: int
    retry_after: int = 0
    config: Optional[RateLimitConfig] = None
    warning: bool = False
    degraded: bool = False

    @property
    def headers(self) -> dict:
        """Conventional rate limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers
