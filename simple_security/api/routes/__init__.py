from __future__ import annotations

from simple_security.api.routes.health import router as health_router

__all__ = ["health_router"]
