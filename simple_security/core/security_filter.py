"""Registration helper installing the security guard on a FastAPI app."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from simple_security.core.config import SecuritySettings
from simple_security.core.middleware import RateLimitMiddleware, ScanningFilterMiddleware
from simple_security.core.rate_limit import LogAction, RateLimitGuard, build_rate_limiter
from simple_security.core.scan_filter import ScanningFilter

logger = logging.getLogger(__name__)


def add_simple_security_filter(
    app: FastAPI,
    options: SecuritySettings | None = None,
    log_action: LogAction | None = None,
) -> RateLimitGuard | None:
    """Install the enabled guard stages on ``app``.

    Must be called before the application starts serving. Requests pass the
    scan filter first and the rate limiter second.

    Args:
        app: Application to protect.
        options: Guard settings; defaults (filtering on, rate limiting off)
            are used when omitted.
        log_action: Callback receiving rate limit rejections. ``None``
            disables rejection logging.

    Returns:
        The rate limit guard when rate limiting is enabled, else None.
    """

    options = options or SecuritySettings()
    guard: RateLimitGuard | None = None

    # Registered first so that it runs after the scan filter
    if options.rate_limit_enabled:
        guard = RateLimitGuard(build_rate_limiter(options), log_action=log_action)
        app.middleware("http")(RateLimitMiddleware(guard))

    if options.filter_patterns_enabled:
        app.middleware("http")(ScanningFilterMiddleware(ScanningFilter()))

    logger.info(
        "security_filter.configured",
        extra={
            "filter_patterns_enabled": options.filter_patterns_enabled,
            "rate_limit_enabled": options.rate_limit_enabled,
            "max_requests_per_second_per_ip": options.max_requests_per_second_per_ip,
        },
    )
    return guard
