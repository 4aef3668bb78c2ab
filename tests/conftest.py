"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``signal_log`` import so the global
settings never pick up a developer's local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("SECURITY_ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("SECURITY_ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from signal_log.core.app_factory import create_app
from signal_log.core.config import LogSettings, RateLimitSettings, SecuritySettings, Settings

ADMIN_KEY = "test-admin-key-123"


class FakeClock:
    """Deterministic clock used to test window logic."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def make_request(
    headers: dict[str, str] | None = None,
    *,
    client: tuple[str, int] | None = ("10.0.0.9", 52000),
    path: str = "/v1/projects",
    app: FastAPI | None = None,
) -> Request:
    """Build a bare Starlette request with the given headers."""
    raw_headers: Iterable[tuple[bytes, bytes]] = [
        (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": path,
        "query_string": b"",
        "headers": list(raw_headers),
        "client": client,
    }
    if app is not None:
        scope["app"] = app
    return Request(scope)


def build_settings(**rate_limit_overrides) -> Settings:
    return Settings(
        app_env="testing",
        rate_limit=RateLimitSettings(**rate_limit_overrides),
        security=SecuritySettings(
            admin_api_key_required=True,
            admin_api_keys=ADMIN_KEY,
            echo_events=False,
        ),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app(clock: FakeClock) -> FastAPI:
    return create_app(build_settings(max_requests=3, window_seconds=60), clock=clock)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_KEY, "X-Forwarded-For": "203.0.113.7"}
