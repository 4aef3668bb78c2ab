from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check; never rate limited.

    Returns:
        dict: ``status`` plus the number of retained security events.
    """

    return {
        "status": "ok",
        "security_events": len(request.app.state.security_monitor),
    }
