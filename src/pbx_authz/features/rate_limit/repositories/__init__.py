"""Rate limit counter storage."""

from .rate_limit_store import RateLimitStore

__all__ = ["RateLimitStore"]
