"""Rate limit services."""

from .rate_limiter import RateLimiter, classify_operation, build_rate_limit_key

__all__ = ["RateLimiter", "classify_operation", "build_rate_limit_key"]
