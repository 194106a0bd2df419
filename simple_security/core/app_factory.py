"""Application factory for the protected demo service."""

from __future__ import annotations

from fastapi import FastAPI

from simple_security.api.routes import health_router
from simple_security.core.config import SecuritySettings, settings
from simple_security.core.exception_handlers import setup_exception_handlers
from simple_security.core.logging import configure_logging
from simple_security.core.middleware import request_id_middleware
from simple_security.core.rate_limit import LogAction, log_rate_limit_rejection
from simple_security.core.security_filter import add_simple_security_filter


def create_app(
    security: SecuritySettings | None = None,
    log_action: LogAction | None = log_rate_limit_rejection,
) -> FastAPI:
    """Create the FastAPI application with the security guard installed.

    Args:
        security: Guard settings; the environment-driven settings by default.
        log_action: Rate limit rejection callback (None disables it).

    Returns:
        Configured FastAPI app.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(title="Simple Security Filter", version="0.1.0")

    add_simple_security_filter(app, security or settings.security, log_action=log_action)

    # Outermost, so blocked and throttled responses carry a request id too
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
