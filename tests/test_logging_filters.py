"""Tests for sensitive data filtering and JSON log formatting."""

from __future__ import annotations

import json
import logging
from io import StringIO

from signal_log.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    redact,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials():
    logger, stream = _capture("test_redaction")

    logger.info(
        "auth.success",
        extra={
            "authorization": "Bearer sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_security_event_details_are_redacted_recursively():
    logger, stream = _capture("test_nested")

    logger.info(
        "security.event",
        extra={
            "event_type": "auth_failure",
            "details": {
                "endpoint": "/api/projects",
                "headers": {"cookie": "__session=abc", "user-agent": "curl/8"},
                "attempts": [{"password": "hunter2"}],
            },
        },
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "security.event"
    assert payload["details"]["endpoint"] == "/api/projects"
    assert payload["details"]["headers"] == {"cookie": "[REDACTED]", "user-agent": "curl/8"}
    assert payload["details"]["attempts"] == [{"password": "[REDACTED]"}]


def test_safe_fields_pass_through():
    logger, stream = _capture("test_safe_fields")

    logger.info(
        "request.completed",
        extra={"request_path": "/v1/security/events", "status_code": 429, "duration_ms": 1.5},
    )

    payload = json.loads(stream.getvalue())
    assert payload["request_path"] == "/v1/security/events"
    assert payload["status_code"] == 429
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context_is_attached():
    logger, stream = _capture("test_request_id")

    set_request_id("req-123")
    try:
        logger.info("rate_limit.exceeded")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_redact_does_not_mutate_input():
    original = {"token": "abc", "nested": {"secret": "x"}}

    result = redact(original)

    assert result == {"token": "[REDACTED]", "nested": {"secret": "[REDACTED]"}}
    assert original["token"] == "abc"
