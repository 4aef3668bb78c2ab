"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

The rate limiter and security monitor never read settings directly. They
receive frozen config values (RateLimitConfig, SecurityMonitorConfig) built
from the settings below, so tests can construct them with compressed windows.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None

# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
# Tests set TESTING=true to keep a developer's local .env out of the run.
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable rate limiter configuration.

    Attributes:
        max_requests: Requests allowed per client within one window.
        window_seconds: Length of the fixed window in seconds.
    """

    max_requests: int = 100
    window_seconds: int = 15 * 60

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")


@dataclass(frozen=True)
class SecurityMonitorConfig:
    """Immutable security monitor configuration.

    Attributes:
        max_events: Capacity of the event log; oldest events are evicted first.
        suspicious_threshold: An IP is suspicious when it has strictly more
            events than this inside the detection window.
        suspicious_window_seconds: Default trailing window for detection.
        echo_events: Whether every logged event is also written to the
            application log.
    """

    max_events: int = 1000
    suspicious_threshold: int = 10
    suspicious_window_seconds: int = 15 * 60
    echo_events: bool = False

    def __post_init__(self) -> None:
        if self.max_events < 1:
            raise ValueError("max_events must be >= 1")
        if self.suspicious_threshold < 0:
            raise ValueError("suspicious_threshold must be >= 0")
        if self.suspicious_window_seconds < 1:
            raise ValueError("suspicious_window_seconds must be >= 1")


class RateLimitSettings(BaseSettings):
    """Per-IP request rate limiting."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on wrapped routes",
    )
    max_requests: int = Field(
        100,
        description="Maximum number of requests allowed per window (per client IP)",
        ge=1,
    )
    window_seconds: int = Field(
        900,
        description="Rate limit window size in seconds",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Attach X-RateLimit-* headers to successful responses",
    )
    trust_forwarded_headers: bool = Field(
        True,
        description="Derive client IP from X-Forwarded-For / X-Real-IP",
    )
    peer_fallback: bool = Field(
        False,
        description="Use the socket peer address before falling back to 'unknown'",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def to_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            max_requests=self.max_requests,
            window_seconds=self.window_seconds,
        )


class SecuritySettings(BaseSettings):
    """Security event monitor and admin API configuration."""

    max_events: int = Field(
        1000,
        description="Number of most recent security events kept in memory",
        ge=1,
    )
    suspicious_threshold: int = Field(
        10,
        description="Events per IP above which activity is flagged as suspicious",
        ge=0,
    )
    suspicious_window_seconds: int = Field(
        900,
        description="Trailing window (seconds) used by suspicious activity detection",
        ge=1,
    )
    echo_events: bool | None = Field(
        None,
        description="Log every security event; defaults to on in development only",
    )
    admin_api_key_required: bool = Field(
        True,
        description="Whether the security admin API requires an X-API-Key",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of keys accepted by the security admin API",
    )

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        case_sensitive=False,
    )

    def to_config(self, app_env: str = APP_ENV) -> SecurityMonitorConfig:
        echo = self.echo_events
        if echo is None:
            echo = app_env == "development"
        return SecurityMonitorConfig(
            max_events=self.max_events,
            suspicious_threshold=self.suspicious_threshold,
            suspicious_window_seconds=self.suspicious_window_seconds,
            echo_events=echo,
        )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Environments:
    - development: Local development (security events echoed to the log)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


# Global settings instance, composed from domain-specific settings.
settings = Settings()
