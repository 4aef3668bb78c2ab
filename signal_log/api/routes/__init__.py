from __future__ import annotations

from signal_log.api.routes.health import router as health_router
from signal_log.api.routes.security import router as security_router

__all__ = ["health_router", "security_router"]
