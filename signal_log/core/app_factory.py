"""Application factory for the FastAPI app.

Builds the per-application services (rate limiter, security monitor) once and
attaches them to ``app.state`` so handlers and dependencies share them without
module-level globals. Tests build isolated apps with their own settings and
clocks.
"""

from __future__ import annotations

import time
from typing import Callable

from fastapi import FastAPI, Request

from signal_log.api.routes import health_router, security_router
from signal_log.core.client_info import UNKNOWN
from signal_log.core.config import Settings, settings as default_settings
from signal_log.core.exception_handlers import setup_exception_handlers
from signal_log.core.logging import configure_logging
from signal_log.core.middleware import request_id_middleware
from signal_log.core.openapi import apply_openapi_customizations
from signal_log.core.rate_limit import RateLimitDecision, RateLimiter
from signal_log.core.security_monitor import SecurityMonitor


def build_security_monitor(
    app_settings: Settings, *, clock: Callable[[], float] = time.time
) -> SecurityMonitor:
    return SecurityMonitor(app_settings.security.to_config(app_settings.app_env), clock=clock)


def build_rate_limiter(
    app_settings: Settings,
    monitor: SecurityMonitor,
    *,
    clock: Callable[[], float] = time.time,
) -> RateLimiter:
    """Build the limiter and record each rejection on ``monitor``."""
    rl = app_settings.rate_limit

    def record_rate_limit(request: Request, decision: RateLimitDecision) -> None:
        monitor.log_rate_limit(
            decision.client_ip,
            request.headers.get("user-agent") or UNKNOWN,
            {"endpoint": request.url.path, "method": request.method},
        )

    return RateLimiter(
        rl.to_config(),
        clock=clock,
        enabled=rl.enabled,
        include_headers=rl.include_headers,
        trust_forwarded_headers=rl.trust_forwarded_headers,
        peer_fallback=rl.peer_fallback,
        on_limited=record_rate_limit,
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-derived ones.
        clock: Time source shared by the limiter and monitor.

    Returns:
        Configured app with services, middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Signal Log Guard",
        description=(
            "Per-client request rate limiting and an in-memory security event "
            "log for the Signal Log route handlers, with an admin API to query "
            "recent events, aggregate metrics and per-IP suspicious activity."
        ),
        version="0.1.0",
    )

    monitor = build_security_monitor(cfg, clock=clock)
    app.state.security_monitor = monitor
    app.state.rate_limiter = build_rate_limiter(cfg, monitor, clock=clock)
    app.state.settings = cfg

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(security_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
