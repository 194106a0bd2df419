"""Rate limiting adapters.

The guard depends on ``AbstractRateLimiter`` only, so the in-memory,
per-process store can be replaced without touching the middleware.
"""

from simple_security.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from simple_security.adapters.rate_limit.in_memory import (
    InMemoryFixedWindowRateLimiter,
    RateWindowBucket,
)

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
    "RateWindowBucket",
]
