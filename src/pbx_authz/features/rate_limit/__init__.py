"""Rate limiting feature for pbx-authz.

In-memory fixed-window counters keyed by principal (or caller IP), method
and endpoint, with route, operation-class and role tiers.
"""

from .entities import RateLimitConfig, RateLimitEntry, RateLimitDecision
from .repositories import RateLimitStore
from .services import RateLimiter, classify_operation, build_rate_limit_key

__all__ = [
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitDecision",
    "RateLimitStore",
    "RateLimiter",
    "classify_operation",
    "build_rate_limit_key",
]
