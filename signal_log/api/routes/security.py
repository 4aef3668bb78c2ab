from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from signal_log.api.deps import get_security_monitor
from signal_log.core.auth import verify_admin_key
from signal_log.core.errors import ValidationAppError
from signal_log.core.rate_limit import enforce_rate_limit
from signal_log.core.security_monitor import DEFAULT_QUERY_LIMIT, SecurityMonitor
from signal_log.schemas.security import (
    SecurityEventOut,
    SecurityEventsResponse,
    SecurityMetricsResponse,
    SuspiciousActivityResponse,
)

router = APIRouter(
    prefix="/security",
    tags=["Security"],
    # Rate limit runs before auth: rejected keys spend the budget too.
    dependencies=[Depends(enforce_rate_limit), Depends(verify_admin_key)],
)

EventTypeParam = Literal["auth_failure", "rate_limit", "suspicious_activity", "data_access", "admin_action"]
SeverityParam = Literal["low", "medium", "high", "critical"]


@router.get("/events", response_model=SecurityEventsResponse)
async def list_events(
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, description="Maximum number of events to return."),
    type: Optional[EventTypeParam] = Query(None, description="Only events of this type."),
    severity: Optional[SeverityParam] = Query(None, description="Only events of this severity."),
    user_id: Optional[str] = Query(None, description="Only events attributed to this user."),
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> SecurityEventsResponse:
    """Return the most recent security events, oldest first.

    At most one of ``type``, ``severity`` and ``user_id`` may be given.

    Raises:
        ValidationAppError: When more than one filter is supplied.
    """
    filters = {k: v for k, v in {"type": type, "severity": severity, "user_id": user_id}.items() if v}
    if len(filters) > 1:
        raise ValidationAppError(
            code="conflicting_filters",
            message="Filter by at most one of type, severity or user_id",
            details={"hint": f"received: {', '.join(sorted(filters))}"},
        )

    if type:
        events = monitor.get_events_by_type(type, limit)
    elif severity:
        events = monitor.get_events_by_severity(severity, limit)
    elif user_id:
        events = monitor.get_events_by_user(user_id, limit)
    else:
        events = monitor.get_recent_events(limit)

    return SecurityEventsResponse(
        count=len(events),
        events=[SecurityEventOut.from_event(e) for e in events],
    )


@router.get("/metrics", response_model=SecurityMetricsResponse)
async def get_metrics(
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> SecurityMetricsResponse:
    """Aggregate counts over retained events plus advisory notes."""
    metrics = monitor.get_metrics()
    return SecurityMetricsResponse.from_metrics(metrics, monitor.recommendations(metrics))


@router.get("/suspicious/{ip}", response_model=SuspiciousActivityResponse)
async def check_ip(
    ip: str,
    window_seconds: Optional[int] = Query(None, ge=1, description="Trailing window; defaults to 15 minutes."),
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> SuspiciousActivityResponse:
    """Report whether ``ip`` exceeded the suspicious activity threshold."""
    window = window_seconds or monitor.config.suspicious_window_seconds
    return SuspiciousActivityResponse(
        ip=ip,
        window_seconds=window,
        event_count=monitor.count_events_from(ip, window),
        threshold=monitor.config.suspicious_threshold,
        suspicious=monitor.check_suspicious_activity(ip, window),
    )
