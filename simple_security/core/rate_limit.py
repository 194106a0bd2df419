"""Per-client admission guard on top of the rate limiting adapter.

Rate limiting strategy:
- Fixed one-second window per client key (X-Forwarded-For / peer address).
- No queueing: a request over budget is answered with 429 immediately.
- Rejections are reported through an injectable callback; without one they
  are not logged at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from simple_security.adapters.rate_limit.base import AbstractRateLimiter
from simple_security.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from simple_security.core.config import SecuritySettings
from simple_security.core.decisions import Continue, Decision, Respond

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 1
# Rejected requests are never held back waiting for budget.
QUEUE_LIMIT = 0

TOO_MANY_REQUESTS_BODY = "Too many requests"


@dataclass(frozen=True)
class RateLimitRejection:
    """Structured message handed to the rejection callback."""

    client_key: str
    path: str

    def __str__(self) -> str:
        return f"Rate limit exceeded for {self.client_key} on {self.path}"


LogAction = Callable[[RateLimitRejection], None]


def log_rate_limit_rejection(rejection: RateLimitRejection) -> None:
    """Default callback: emit the rejection on the module logger."""

    logger.warning(
        "rate_limit.exceeded",
        extra={"client_key": rejection.client_key, "path": rejection.path},
    )


def build_rate_limiter(options: SecuritySettings) -> InMemoryFixedWindowRateLimiter:
    """Create the process-wide limiter described by ``options``."""

    return InMemoryFixedWindowRateLimiter(
        limit=options.max_requests_per_second_per_ip,
        window_seconds=WINDOW_SECONDS,
        stale_after_windows=options.rate_limit_stale_windows,
    )


class RateLimitGuard:
    """Admit or throttle requests per client key."""

    def __init__(self, limiter: AbstractRateLimiter, log_action: LogAction | None = None) -> None:
        self._limiter = limiter
        self._log_action = log_action

    @property
    def limiter(self) -> AbstractRateLimiter:
        return self._limiter

    def _report(self, rejection: RateLimitRejection) -> None:
        if self._log_action is None:
            return
        try:
            self._log_action(rejection)
        except Exception as exc:  # a broken log sink must not fail the request
            logger.warning(
                "rate_limit.log_action_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )

    def evaluate(self, client_key: str, path: str) -> Decision:
        """Consume one request of budget for ``client_key``.

        Args:
            client_key: Resolved client identity.
            path: Request path, used only for the rejection report.

        Returns:
            ``Continue()`` when admitted, ``Respond(429, "Too many requests")``
            when the client's window is exhausted.
        """

        result = self._limiter.admit(client_key)
        if result.allowed:
            return Continue()

        self._report(RateLimitRejection(client_key=client_key, path=path))
        return Respond(status_code=429, body=TOO_MANY_REQUESTS_BODY)
