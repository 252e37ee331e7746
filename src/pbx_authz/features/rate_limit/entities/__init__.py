"""Rate limit entities."""

from .rate_limit import RateLimitConfig, RateLimitEntry, RateLimitDecision

__all__ = ["RateLimitConfig", "RateLimitEntry", "RateLimitDecision"]
