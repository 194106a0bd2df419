"""HTTP middleware: request correlation and the two guard stages.

Usage:
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(RateLimitMiddleware(guard))
    app.middleware("http")(ScanningFilterMiddleware(ScanningFilter()))

Starlette runs the middleware registered last first, so the order above
yields request id → scan filter → rate limiter → application.
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from simple_security.core.config import settings
from simple_security.core.decisions import Decision, Respond
from simple_security.core.logging import clear_request_id, set_request_id
from simple_security.core.rate_limit import RateLimitGuard
from simple_security.core.scan_filter import RequestMetadata, ScanningFilter, request_path


def decision_response(decision: Respond) -> Response:
    """Render a short-circuit decision as a plain-text response."""

    return Response(
        content=decision.body,
        status_code=decision.status_code,
        media_type="text/plain",
    )


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request logs and the response.

    Uses the incoming request id header when present, otherwise a new UUID.
    The id is stored in a context variable for the duration of the request
    and echoed back together with ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


class ScanningFilterMiddleware:
    """Answer blocklisted requests with 403 before they reach the app."""

    def __init__(self, scan_filter: ScanningFilter) -> None:
        self.scan_filter = scan_filter

    async def __call__(self, request: Request, call_next) -> Response:
        decision: Decision = self.scan_filter.evaluate(RequestMetadata.from_request(request))
        if isinstance(decision, Respond):
            return decision_response(decision)
        return await call_next(request)


class RateLimitMiddleware:
    """Answer clients over their per-second budget with 429."""

    def __init__(self, guard: RateLimitGuard) -> None:
        self.guard = guard

    async def __call__(self, request: Request, call_next) -> Response:
        client_key = RequestMetadata.from_request(request).client_key()
        decision: Decision = self.guard.evaluate(client_key, request_path(request))
        if isinstance(decision, Respond):
            return decision_response(decision)
        return await call_next(request)
