"""Fallback exception handling for the protected application.

The guard stages never raise into the host; this handler covers the
downstream application so unexpected errors still produce a JSON 500 with
the request id and no traceback.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from simple_security.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected error and return a generic 500 response.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic error body.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register the fallback handler on a FastAPI app."""
    app.exception_handler(Exception)(general_exception_handler)
