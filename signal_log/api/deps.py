"""FastAPI dependencies resolving the per-application services.

The limiter and monitor are created once by ``create_app`` and attached to
``app.state``; handlers receive them through these functions instead of
importing module-level instances.
"""

from fastapi import Request

from signal_log.core.client_info import ClientInfo
from signal_log.core.rate_limit import RateLimiter, resolve_client
from signal_log.core.security_monitor import SecurityMonitor


def get_security_monitor(request: Request) -> SecurityMonitor:
    return request.app.state.security_monitor


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_client(request: Request) -> ClientInfo:
    """Client IP and user agent of the current request."""
    return resolve_client(request)
