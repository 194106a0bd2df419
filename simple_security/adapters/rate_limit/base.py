"""Rate limiter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of an admission check.

    Attributes:
        allowed: True when the request was admitted, False when rejected.
        limit: Max requests per window.
        remaining: Requests still available in the current window.
        reset_at: Clock reading at which the current window ends.
        retry_after_seconds: Time until the window ends, only set when rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: float | None = None


class AbstractRateLimiter(ABC):
    """Interface for per-key rate limiters."""

    @abstractmethod
    def admit(self, key: str) -> RateLimitResult:
        """Record one request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identity (see ``resolve_client_key``).

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError
