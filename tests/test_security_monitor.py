"""Unit tests for the in-memory security event monitor."""

import logging
from datetime import datetime

import pytest

from conftest import FakeClock
from signal_log.core.config import SecurityMonitorConfig
from signal_log.core.security_monitor import SecurityMonitor


@pytest.fixture
def monitor(clock: FakeClock) -> SecurityMonitor:
    return SecurityMonitor(clock=clock)


def test_log_event_is_returned_by_recent_events(monitor: SecurityMonitor, clock: FakeClock) -> None:
    monitor.log_event("data_access", "1.2.3.4", "pytest", {"endpoint": "/api/projects"}, "low", user_id="user_1")

    [event] = monitor.get_recent_events(1)

    assert event.type == "data_access"
    assert event.ip == "1.2.3.4"
    assert event.user_agent == "pytest"
    assert event.user_id == "user_1"
    assert event.details == {"endpoint": "/api/projects"}
    assert event.severity == "low"
    assert datetime.fromisoformat(event.timestamp).timestamp() == clock()


def test_details_are_stored_as_is(monitor: SecurityMonitor) -> None:
    payload = {"nested": {"list": [1, 2]}, "weird": None}
    event = monitor.log_suspicious_activity("1.2.3.4", "pytest", payload)

    assert event.details is payload


def test_log_is_capped_with_fifo_eviction(monitor: SecurityMonitor) -> None:
    for i in range(1001):
        monitor.log_data_access("user", "1.2.3.4", "pytest", {"seq": i})

    events = monitor.get_recent_events(1001)

    assert len(events) == 1000
    assert len(monitor) == 1000
    assert events[0].details["seq"] == 1
    assert events[-1].details["seq"] == 1000


def test_capacity_follows_config(clock: FakeClock) -> None:
    monitor = SecurityMonitor(SecurityMonitorConfig(max_events=3), clock=clock)
    for i in range(5):
        monitor.log_rate_limit("1.2.3.4", "pytest", {"seq": i})

    assert [e.details["seq"] for e in monitor.get_recent_events()] == [2, 3, 4]


@pytest.mark.parametrize(
    ("method", "args", "event_type", "severity", "user_id"),
    [
        ("log_auth_failure", ("ip", "ua", {}), "auth_failure", "medium", None),
        ("log_rate_limit", ("ip", "ua", {}), "rate_limit", "medium", None),
        ("log_suspicious_activity", ("ip", "ua", {}), "suspicious_activity", "high", None),
        ("log_data_access", ("u1", "ip", "ua", {}), "data_access", "low", "u1"),
        ("log_admin_action", ("u1", "ip", "ua", {}), "admin_action", "high", "u1"),
    ],
)
def test_wrappers_use_fixed_severities(
    monitor: SecurityMonitor, method: str, args: tuple, event_type: str, severity: str, user_id
) -> None:
    event = getattr(monitor, method)(*args)

    assert event.type == event_type
    assert event.severity == severity
    assert event.user_id == user_id
    assert event.ip == "ip"


def test_get_events_by_type_returns_latest_matches_in_order(monitor: SecurityMonitor) -> None:
    for i in range(8):
        monitor.log_auth_failure("1.2.3.4", "pytest", {"seq": i})
        monitor.log_data_access("user", "1.2.3.4", "pytest", {"seq": i})

    events = monitor.get_events_by_type("auth_failure", 5)

    assert len(events) == 5
    assert all(e.type == "auth_failure" for e in events)
    assert [e.details["seq"] for e in events] == [3, 4, 5, 6, 7]


def test_get_events_by_severity_and_user(monitor: SecurityMonitor) -> None:
    monitor.log_admin_action("admin", "1.1.1.1", "ua", {})
    monitor.log_auth_failure("2.2.2.2", "ua", {})
    monitor.log_suspicious_activity("3.3.3.3", "ua", {})

    assert [e.type for e in monitor.get_events_by_severity("high")] == ["admin_action", "suspicious_activity"]
    assert [e.type for e in monitor.get_events_by_user("admin")] == ["admin_action"]
    assert monitor.get_events_by_severity("critical") == []


def test_default_query_limit_is_50(monitor: SecurityMonitor) -> None:
    for _ in range(60):
        monitor.log_rate_limit("1.2.3.4", "pytest", {})

    assert len(monitor.get_recent_events()) == 50
    assert len(monitor.get_events_by_type("rate_limit")) == 50


def test_invalid_limit_rejected(monitor: SecurityMonitor) -> None:
    with pytest.raises(ValueError):
        monitor.get_recent_events(0)


def test_suspicious_activity_threshold_is_strictly_greater_than_ten(monitor: SecurityMonitor) -> None:
    for _ in range(10):
        monitor.log_data_access("user", "1.2.3.4", "pytest", {})
    assert monitor.check_suspicious_activity("1.2.3.4") is False

    monitor.log_data_access("user", "1.2.3.4", "pytest", {})
    assert monitor.check_suspicious_activity("1.2.3.4") is True
    assert monitor.check_suspicious_activity("5.6.7.8") is False


def test_suspicious_activity_only_counts_trailing_window(monitor: SecurityMonitor, clock: FakeClock) -> None:
    for _ in range(6):
        monitor.log_auth_failure("1.2.3.4", "pytest", {})
    clock.advance(15 * 60)
    for _ in range(6):
        monitor.log_auth_failure("1.2.3.4", "pytest", {})

    # The first batch sits exactly on the window boundary and is excluded.
    assert monitor.count_events_from("1.2.3.4") == 6
    assert monitor.check_suspicious_activity("1.2.3.4") is False
    assert monitor.check_suspicious_activity("1.2.3.4", window_seconds=15 * 60 + 1) is True


def test_check_suspicious_activity_does_not_mutate(monitor: SecurityMonitor) -> None:
    for _ in range(11):
        monitor.log_auth_failure("1.2.3.4", "pytest", {})

    monitor.check_suspicious_activity("1.2.3.4")

    assert len(monitor) == 11
    assert monitor.get_events_by_type("suspicious_activity") == []


def test_repeated_auth_failures_flag_ip(monitor: SecurityMonitor) -> None:
    for _ in range(11):
        monitor.log_auth_failure("1.2.3.4", "curl/8", {"reason": "bad_password"})

    assert monitor.check_suspicious_activity("1.2.3.4") is True
    assert len(monitor.get_events_by_severity("medium", 20)) == 11


def test_metrics_and_recommendations(monitor: SecurityMonitor) -> None:
    for _ in range(6):
        monitor.log_suspicious_activity("1.2.3.4", "ua", {})
    monitor.log_event("suspicious_activity", "1.2.3.4", "ua", {}, severity="critical")
    monitor.log_auth_failure("1.2.3.4", "ua", {})

    metrics = monitor.get_metrics()

    assert metrics.total_events == 8
    assert metrics.events_by_type == {"suspicious_activity": 7, "auth_failure": 1}
    assert metrics.events_by_severity == {"high": 6, "critical": 1, "medium": 1}
    assert metrics.recent_violations == 7

    notes = monitor.recommendations(metrics)
    assert any("security violations" in n for n in notes)
    assert any("Critical" in n for n in notes)


def test_recommendations_empty_for_empty_log(monitor: SecurityMonitor) -> None:
    assert monitor.recommendations(monitor.get_metrics()) == []


def test_clear_empties_the_log(monitor: SecurityMonitor) -> None:
    monitor.log_rate_limit("1.2.3.4", "ua", {})
    monitor.clear()

    assert len(monitor) == 0


def test_echo_logs_events_when_enabled(clock: FakeClock, caplog: pytest.LogCaptureFixture) -> None:
    monitor = SecurityMonitor(SecurityMonitorConfig(echo_events=True), clock=clock)

    with caplog.at_level(logging.INFO, logger="signal_log.core.security_monitor"):
        monitor.log_auth_failure("1.2.3.4", "curl/8", {"reason": "bad_password"})

    [record] = [r for r in caplog.records if r.getMessage() == "security.event"]
    assert record.event_type == "auth_failure"
    assert record.client_ip == "1.2.3.4"


def test_no_echo_by_default(monitor: SecurityMonitor, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="signal_log.core.security_monitor"):
        monitor.log_auth_failure("1.2.3.4", "curl/8", {})

    assert not [r for r in caplog.records if r.getMessage() == "security.event"]
