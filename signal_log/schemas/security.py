"""Pydantic schemas for the security admin API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from signal_log.core.security_monitor import SecurityEvent, SecurityMetrics


class SecurityEventOut(BaseModel):
    """A stored security event as exposed over HTTP."""

    type: Literal["auth_failure", "rate_limit", "suspicious_activity", "data_access", "admin_action"] = Field(
        ..., description="Event category."
    )
    severity: Literal["low", "medium", "high", "critical"] = Field(
        ..., description="Qualitative priority tag used for filtering."
    )
    ip: str = Field(..., description="Client IP, or 'unknown'.")
    user_agent: str = Field(..., description="Client user agent, or 'unknown'.")
    timestamp: str = Field(..., description="ISO-8601 UTC time the event was recorded.")
    user_id: Optional[str] = Field(default=None, description="Acting user, when known.")
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Caller-supplied context, stored without validation.",
    )

    @classmethod
    def from_event(cls, event: SecurityEvent) -> "SecurityEventOut":
        return cls(**event.to_dict())


class SecurityEventsResponse(BaseModel):
    """Most recent matching events, oldest first."""

    count: int = Field(..., description="Number of events returned.")
    events: List[SecurityEventOut] = Field(default_factory=list)


class SecurityMetricsResponse(BaseModel):
    """Counts over the events currently retained by the monitor."""

    total_events: int = Field(..., description="Events currently retained.")
    events_by_type: Dict[str, int] = Field(default_factory=dict)
    events_by_severity: Dict[str, int] = Field(default_factory=dict)
    recent_violations: int = Field(..., description="Retained events of high or critical severity.")
    recommendations: List[str] = Field(
        default_factory=list,
        description="Advisory notes derived from the event mix.",
    )

    @classmethod
    def from_metrics(cls, metrics: SecurityMetrics, recommendations: List[str]) -> "SecurityMetricsResponse":
        return cls(
            total_events=metrics.total_events,
            events_by_type=metrics.events_by_type,
            events_by_severity=metrics.events_by_severity,
            recent_violations=metrics.recent_violations,
            recommendations=recommendations,
        )


class SuspiciousActivityResponse(BaseModel):
    """Result of the per-IP suspicious activity heuristic."""

    ip: str
    window_seconds: int = Field(..., description="Trailing window inspected.")
    event_count: int = Field(..., description="Events from the IP inside the window.")
    threshold: int = Field(..., description="Flag when event_count is strictly greater than this.")
    suspicious: bool
