"""Client identity extraction shared by the rate limiter and security monitor.

Header precedence: ``X-Forwarded-For`` (first hop), ``X-Real-IP``, then
optionally the socket peer, then the literal ``"unknown"``. Every client that
resolves to ``"unknown"`` shares a single rate-limit bucket; that fallback is
logged at debug level so deployments without a proxy notice it.

Only the first ``X-Forwarded-For`` hop is used, not the whole header value.
Keying on the full value would give one client a fresh bucket for every proxy
chain it is seen through, and lets it append arbitrary hops to dodge its limit.

Callers inside a running app should use ``rate_limit.resolve_client`` so the
IP always follows the limiter's ``trust_forwarded_headers`` policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi.requests import HTTPConnection

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClientInfo:
    ip: str
    user_agent: str


def get_client_ip(
    request: HTTPConnection,
    *,
    trust_forwarded_headers: bool = True,
    peer_fallback: bool = False,
) -> str:
    """Resolve the client IP for a request.

    Args:
        request: Incoming request (or websocket) exposing headers.
        trust_forwarded_headers: Read proxy headers. Disable when the service
            is exposed directly and clients could spoof them.
        peer_fallback: Use the socket peer address when no header is present.

    Returns:
        Client IP string, or ``"unknown"``.
    """

    if trust_forwarded_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2"
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop

        real_ip = (request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip

    if (peer_fallback or not trust_forwarded_headers) and request.client and request.client.host:
        return request.client.host

    logger.debug(
        "client_ip.unresolved",
        extra={"request_path": request.url.path, "fallback": UNKNOWN},
    )
    return UNKNOWN


def get_client_info(
    request: HTTPConnection,
    *,
    trust_forwarded_headers: bool = True,
    peer_fallback: bool = False,
) -> ClientInfo:
    """Return the client IP and user agent, each defaulting to ``"unknown"``."""

    return ClientInfo(
        ip=get_client_ip(
            request,
            trust_forwarded_headers=trust_forwarded_headers,
            peer_fallback=peer_fallback,
        ),
        user_agent=request.headers.get("user-agent") or UNKNOWN,
    )
