"""In-process security event log with query and detection helpers.

The monitor keeps the most recent ``max_events`` events in a bounded ring
buffer (oldest evicted first). It is a plain service object: the app factory
builds one per application and route handlers reach it through
``request.app.state.security_monitor``. Nothing is persisted; a restart
discards the log.

Detection is deliberately passive. ``check_suspicious_activity`` only reports;
alerting or blocking is up to the caller.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Literal, Mapping, get_args

from signal_log.core.config import SecurityMonitorConfig

logger = logging.getLogger(__name__)

EventType = Literal[
    "auth_failure",
    "rate_limit",
    "suspicious_activity",
    "data_access",
    "admin_action",
]
Severity = Literal["low", "medium", "high", "critical"]

EVENT_TYPES: tuple[str, ...] = get_args(EventType)
SEVERITIES: tuple[str, ...] = get_args(Severity)

DEFAULT_QUERY_LIMIT = 50


@dataclass(frozen=True)
class SecurityEvent:
    """A single security-relevant occurrence.

    ``details`` is stored exactly as the caller passed it; the monitor does no
    validation of event fields.
    """

    type: EventType
    ip: str
    user_agent: str
    timestamp: str
    severity: Severity
    details: Mapping[str, Any] = field(default_factory=dict)
    user_id: str | None = None

    @property
    def occurred_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["details"] = dict(self.details)
        return data


@dataclass(frozen=True)
class SecurityMetrics:
    """Aggregate counts over the events currently held by the monitor."""

    total_events: int
    events_by_type: dict[str, int]
    events_by_severity: dict[str, int]
    recent_violations: int


def _check_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be >= 1")
    return limit


def _tail(events: Iterable[SecurityEvent], limit: int) -> list[SecurityEvent]:
    """Last ``limit`` items of ``events``, oldest first."""
    return list(deque(events, maxlen=_check_limit(limit)))


class SecurityMonitor:
    """Append-only, bounded log of security events.

    Args:
        config: Capacity, detection threshold/window and echo behaviour.
        clock: Time source returning UNIX seconds; inject a fake in tests.
    """

    def __init__(
        self,
        config: SecurityMonitorConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SecurityMonitorConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._events: deque[SecurityEvent] = deque(maxlen=self.config.max_events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _snapshot(self) -> list[SecurityEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def log_event(
        self,
        type: EventType,
        ip: str,
        user_agent: str,
        details: Mapping[str, Any] | None = None,
        severity: Severity = "low",
        user_id: str | None = None,
    ) -> SecurityEvent:
        """Timestamp and store an event, evicting the oldest past capacity.

        Returns:
            The stored event.
        """
        event = SecurityEvent(
            type=type,
            ip=ip,
            user_agent=user_agent,
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            severity=severity,
            details=details if details is not None else {},
            user_id=user_id,
        )

        with self._lock:
            self._events.append(event)

        if self.config.echo_events:
            logger.info(
                "security.event",
                extra={
                    "event_type": event.type,
                    "severity": event.severity,
                    "client_ip": event.ip,
                    "user_agent": event.user_agent,
                    "user_id": event.user_id,
                    "event_timestamp": event.timestamp,
                    "details": dict(event.details),
                },
            )
        return event

    def log_auth_failure(self, ip: str, user_agent: str, details: Mapping[str, Any]) -> SecurityEvent:
        return self.log_event("auth_failure", ip, user_agent, details, severity="medium")

    def log_rate_limit(self, ip: str, user_agent: str, details: Mapping[str, Any]) -> SecurityEvent:
        return self.log_event("rate_limit", ip, user_agent, details, severity="medium")

    def log_suspicious_activity(self, ip: str, user_agent: str, details: Mapping[str, Any]) -> SecurityEvent:
        return self.log_event("suspicious_activity", ip, user_agent, details, severity="high")

    def log_data_access(
        self, user_id: str, ip: str, user_agent: str, details: Mapping[str, Any]
    ) -> SecurityEvent:
        return self.log_event("data_access", ip, user_agent, details, severity="low", user_id=user_id)

    def log_admin_action(
        self, user_id: str, ip: str, user_agent: str, details: Mapping[str, Any]
    ) -> SecurityEvent:
        return self.log_event("admin_action", ip, user_agent, details, severity="high", user_id=user_id)

    def get_recent_events(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[SecurityEvent]:
        """Return up to ``limit`` most recent events, oldest first."""
        return _tail(self._snapshot(), limit)

    def get_events_by_type(self, type: EventType, limit: int = DEFAULT_QUERY_LIMIT) -> list[SecurityEvent]:
        return _tail((e for e in self._snapshot() if e.type == type), limit)

    def get_events_by_severity(
        self, severity: Severity, limit: int = DEFAULT_QUERY_LIMIT
    ) -> list[SecurityEvent]:
        return _tail((e for e in self._snapshot() if e.severity == severity), limit)

    def get_events_by_user(self, user_id: str, limit: int = DEFAULT_QUERY_LIMIT) -> list[SecurityEvent]:
        return _tail((e for e in self._snapshot() if e.user_id == user_id), limit)

    def count_events_from(self, ip: str, window_seconds: float | None = None) -> int:
        """Number of events from ``ip`` strictly inside the trailing window."""
        window = self.config.suspicious_window_seconds if window_seconds is None else window_seconds
        window_start = self._clock() - window
        return sum(
            1
            for e in self._snapshot()
            if e.ip == ip and e.occurred_at.timestamp() > window_start
        )

    def check_suspicious_activity(self, ip: str, window_seconds: float | None = None) -> bool:
        """Whether ``ip`` produced more events than the threshold in the window.

        Args:
            ip: Client IP to inspect.
            window_seconds: Trailing window; defaults to the configured 15 minutes.
        """
        return self.count_events_from(ip, window_seconds) > self.config.suspicious_threshold

    def get_metrics(self) -> SecurityMetrics:
        events = self._snapshot()
        by_type = Counter(e.type for e in events)
        by_severity = Counter(e.severity for e in events)
        return SecurityMetrics(
            total_events=len(events),
            events_by_type=dict(by_type),
            events_by_severity=dict(by_severity),
            recent_violations=by_severity["high"] + by_severity["critical"],
        )

    @staticmethod
    def recommendations(metrics: SecurityMetrics) -> list[str]:
        """Advisory notes derived from the event mix."""
        notes: list[str] = []
        total = metrics.total_events
        if metrics.recent_violations > 5:
            notes.append("High number of security violations detected - review access patterns")
        if total and metrics.events_by_type.get("auth_failure", 0) > total * 0.5:
            notes.append("High authentication failure rate - consider enforcing MFA")
        if metrics.events_by_severity.get("critical", 0) > 0:
            notes.append("Critical security events detected - immediate investigation required")
        if total and metrics.events_by_type.get("data_access", 0) > total * 0.3:
            notes.append("High data access rate - review data access patterns and permissions")
        return notes
