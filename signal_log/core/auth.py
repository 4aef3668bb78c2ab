"""API key authentication for the security admin API.

Keys are validated against a comma-separated list from the environment
(``SECURITY_ADMIN_API_KEYS``). Every rejected attempt is recorded on the
security monitor as an ``auth_failure`` event; every accepted one as an
``admin_action`` attributed to a hash of the key.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from signal_log.core.config import SecuritySettings, settings
from signal_log.core.errors import AuthenticationAppError
from signal_log.core.rate_limit import resolve_client
from signal_log.core.security_monitor import SecurityMonitor

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 ,key1"))
        ['key1', 'key2']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str, security: SecuritySettings | None = None) -> None:
    """Check ``provided_key`` against the configured admin keys.

    Args:
        provided_key: Value of the X-API-Key header.
        security: Settings to check against; defaults to the global settings.

    Raises:
        AuthenticationAppError: If no keys are configured or the key is unknown.
    """
    security = security or settings.security
    if not security.admin_api_key_required:
        return

    valid_keys = parse_api_keys(security.admin_api_keys)
    if not valid_keys:
        logger.error(
            "auth.validation_failed",
            extra={"reason": "admin_api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="admin_api_keys_not_configured",
            message="Admin authentication is enabled but no valid keys are configured",
            details={
                "hint": "Set SECURITY_ADMIN_API_KEYS or disable with SECURITY_ADMIN_API_KEY_REQUIRED=false"
            },
        )

    if not any(hmac.compare_digest(provided_key.encode(), key.encode()) for key in valid_keys):
        logger.warning(
            "auth.validation_failed",
            extra={"reason": "invalid_api_key", "api_key_hash": hash_api_key(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
            details={"provided_key_length": len(provided_key)},
        )


def _monitor(request: Request) -> SecurityMonitor | None:
    return getattr(request.app.state, "security_monitor", None)


def _security_settings(request: Request) -> SecuritySettings:
    app_settings = getattr(request.app.state, "settings", None)
    return app_settings.security if app_settings is not None else settings.security


async def verify_admin_key(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding the security admin API.

    Usage:
        @router.get("/events", dependencies=[Depends(verify_admin_key)])

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    security = _security_settings(request)
    if not security.admin_api_key_required:
        logger.debug("auth.skipped", extra={"reason": "admin_api_key_required_false"})
        return

    client = resolve_client(request)
    monitor = _monitor(request)

    if not x_api_key:
        logger.warning("auth.missing_key", extra={"request_path": request.url.path})
        if monitor is not None:
            monitor.log_auth_failure(
                client.ip,
                client.user_agent,
                {"endpoint": request.url.path, "reason": "missing_api_key"},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key, security)
    except AuthenticationAppError as exc:
        if monitor is not None:
            monitor.log_auth_failure(
                client.ip,
                client.user_agent,
                {"endpoint": request.url.path, "reason": exc.code},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

    key_hash = hash_api_key(x_api_key)
    logger.info("auth.success", extra={"api_key_hash": key_hash})
    if monitor is not None:
        monitor.log_admin_action(
            f"api_key:{key_hash}",
            client.ip,
            client.user_agent,
            {"endpoint": request.url.path, "method": request.method},
        )
