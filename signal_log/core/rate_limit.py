"""Per-client rate limiting for route handlers.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Explicit service: one RateLimiter is built by the app factory and stored on
  ``app.state``; nothing here is a module-level singleton.
- Swap-friendly: the counter store sits behind AbstractRateLimiter.
- Route-level: routers list ``enforce_rate_limit`` as their first dependency
  so the budget is spent before authentication runs; single handlers can use
  ``@rate_limited`` (or ``limiter.wrap_handler``) instead. There is no global
  middleware, so health checks stay unthrottled.

Rate limiting strategy:
- Fixed window per client IP (100 requests / 15 minutes by default).
- Client IP comes from X-Forwarded-For / X-Real-IP, else "unknown".
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.concurrency import run_in_threadpool

from signal_log.adapters.rate_limit.base import AbstractRateLimiter
from signal_log.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from signal_log.core.client_info import ClientInfo, get_client_info, get_client_ip
from signal_log.core.config import RateLimitConfig

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_BODY = "Rate limit exceeded"

Handler = Callable[..., Any]


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of ``RateLimiter.check`` for one request."""

    allowed: bool
    remaining: int
    client_ip: str
    reset_at: float


LimitedHook = Callable[[Request, RateLimitDecision], None]


class RateLimitExceeded(Exception):
    """Raised by ``enforce_rate_limit``; carries the 429 response to render."""

    def __init__(self, response: Response) -> None:
        super().__init__(RATE_LIMIT_EXCEEDED_BODY)
        self.response = response


def _hash_key(key: str) -> str:
    """Hash the limiter key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _find_request(args: tuple, kwargs: dict) -> Request:
    for value in (*kwargs.values(), *args):
        if isinstance(value, Request):
            return value
    raise TypeError("rate limited handlers must accept a `request: Request` parameter")


async def _call_handler(handler: Handler, args: tuple, kwargs: dict) -> Any:
    if inspect.iscoroutinefunction(handler):
        return await handler(*args, **kwargs)
    return await run_in_threadpool(handler, *args, **kwargs)


class RateLimiter:
    """Request-level facade over a rate limiter store.

    Args:
        config: Limit and window.
        backend: Counter store; defaults to an in-memory fixed window store.
        clock: Time source (UNIX seconds), shared with the default backend.
        enabled: When False, wrapped handlers run without any accounting.
        include_headers: Attach X-RateLimit-* headers to allowed responses.
        trust_forwarded_headers: See ``client_info.get_client_ip``.
        peer_fallback: See ``client_info.get_client_ip``.
        on_limited: Called with the request and decision whenever a request
            is rejected; used to record rate limit hits as security events.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        backend: AbstractRateLimiter | None = None,
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
        include_headers: bool = True,
        trust_forwarded_headers: bool = True,
        peer_fallback: bool = False,
        on_limited: LimitedHook | None = None,
    ) -> None:
        self.config = config or RateLimitConfig()
        self.backend = backend or InMemoryFixedWindowRateLimiter(self.config, clock=clock)
        self.enabled = enabled
        self.include_headers = include_headers
        self.trust_forwarded_headers = trust_forwarded_headers
        self.peer_fallback = peer_fallback
        self.on_limited = on_limited
        self._clock = clock

    def client_key(self, request: Request) -> str:
        return get_client_ip(
            request,
            trust_forwarded_headers=self.trust_forwarded_headers,
            peer_fallback=self.peer_fallback,
        )

    def client_info(self, request: Request) -> ClientInfo:
        """Client IP and user agent, resolved with this limiter's header policy."""
        return get_client_info(
            request,
            trust_forwarded_headers=self.trust_forwarded_headers,
            peer_fallback=self.peer_fallback,
        )

    def check(self, request: Request) -> RateLimitDecision:
        """Count ``request`` against its client's budget.

        Returns:
            RateLimitDecision; ``remaining`` is 0 when the request is rejected.
        """
        client_ip = self.client_key(request)
        result = self.backend.consume(client_ip)
        return RateLimitDecision(
            allowed=result.allowed,
            remaining=result.remaining if result.allowed else 0,
            client_ip=client_ip,
            reset_at=result.reset_at,
        )

    def limited_response(self) -> Response:
        """Fixed 429 response returned for rejected requests."""
        return PlainTextResponse(
            RATE_LIMIT_EXCEEDED_BODY,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers={
                "Retry-After": str(self.config.window_seconds),
                "X-RateLimit-Remaining": "0",
            },
        )

    def _reset_header(self) -> str:
        reset = self._clock() + self.config.window_seconds
        return datetime.fromtimestamp(reset, tz=timezone.utc).isoformat()

    def admit(self, request: Request) -> RateLimitDecision:
        """Check ``request`` and log the outcome; rejections reach ``on_limited``."""
        decision = self.check(request)
        if not decision.allowed:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "key_hash": _hash_key(decision.client_ip),
                    "limit": self.config.max_requests,
                    "window_s": self.config.window_seconds,
                    "request_path": request.url.path,
                },
            )
            if self.on_limited is not None:
                self.on_limited(request, decision)
            return decision

        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": _hash_key(decision.client_ip),
                "remaining": decision.remaining,
            },
        )
        return decision

    def apply_headers(self, response: Response, decision: RateLimitDecision) -> None:
        if self.include_headers:
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
            response.headers["X-RateLimit-Reset"] = self._reset_header()

    async def dispatch(self, request: Request, handler: Handler, args: tuple, kwargs: dict) -> Response:
        """Run ``handler`` if the request is within budget.

        Exceptions raised by ``handler`` propagate unchanged.
        """
        decision = self.admit(request)
        if not decision.allowed:
            return self.limited_response()

        response = await _call_handler(handler, args, kwargs)
        if not isinstance(response, Response):
            response = JSONResponse(content=jsonable_encoder(response))

        self.apply_headers(response, decision)
        return response

    def wrap_handler(self, handler: Handler) -> Callable[..., Awaitable[Response]]:
        """Decorate a request handler with this limiter.

        The handler must take a ``Request`` argument (positional or keyword);
        FastAPI still sees the original signature.
        """

        @functools.wraps(handler)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            if not self.enabled:
                return await _call_handler(handler, args, kwargs)
            request = _find_request(args, kwargs)
            return await self.dispatch(request, handler, args, kwargs)

        return wrapper


def rate_limited(handler: Handler) -> Callable[..., Awaitable[Any]]:
    """Rate limit a route using the limiter registered on ``app.state``.

    Usage:
        @router.get("/things")
        @rate_limited
        async def list_things(request: Request): ...
    """

    @functools.wraps(handler)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        request = _find_request(args, kwargs)
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or not limiter.enabled:
            return await _call_handler(handler, args, kwargs)
        return await limiter.dispatch(request, handler, args, kwargs)

    return wrapper


def _app_limiter(request: Request) -> RateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing the app's rate limit.

    List it before any authentication dependency so rejected credentials
    still spend the caller's budget.

    Usage:
        router = APIRouter(dependencies=[Depends(enforce_rate_limit), Depends(verify_admin_key)])

    Raises:
        RateLimitExceeded: When the client is over budget; rendered as the
            plain-text 429 by the registered exception handler.
    """
    limiter = _app_limiter(request)
    if limiter is None or not limiter.enabled:
        return

    decision = limiter.admit(request)
    if not decision.allowed:
        raise RateLimitExceeded(limiter.limited_response())
    limiter.apply_headers(response, decision)


def resolve_client(request: Request) -> ClientInfo:
    """Client identity using the same header policy as the app's limiter.

    Every component that records a client IP goes through here, so events,
    access logs and rate limit buckets agree on who the client is.
    """
    limiter = _app_limiter(request)
    if limiter is None:
        return get_client_info(request)
    return limiter.client_info(request)
