"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat fields as constructor arguments, hence the
    factory functions.
    """

    return AppSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "Rate Window",
        description="Service name shown in OpenAPI docs",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration (handler, format and correlation header)."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' for structured logs or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limit policies and store maintenance."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on API routes",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers in responses",
    )
    retention_seconds: float = Field(
        1800.0,
        description=(
            "Request history older than this is dropped by compaction; must be "
            "at least the largest policy window"
        ),
        gt=0,
    )
    compaction_interval_seconds: float = Field(
        60.0,
        description="Delay between background compaction runs",
        gt=0,
    )

    global_requests: int = Field(
        100,
        description="Requests allowed per window per client IP on every route",
        ge=0,
    )
    global_window_seconds: float = Field(
        60.0,
        description="Window for the global per-IP policy",
        gt=0,
    )
    route_requests: int = Field(
        10,
        description="Requests allowed per window per client IP and path",
        ge=0,
    )
    route_window_seconds: float = Field(
        900.0,
        description="Window for the per-IP-and-path policy",
        gt=0,
    )
    user_requests: int = Field(
        50,
        description="Requests allowed per window per user (API key) on /api/user",
        ge=0,
    )
    user_window_seconds: float = Field(
        60.0,
        description="Window for the per-user policy",
        gt=0,
    )

    message: str = Field(
        "Too many requests, please try again later.",
        description="Message returned when a request is throttled",
    )
    status_code: int = Field(
        429,
        description="HTTP status code returned when a request is throttled",
        ge=400,
        le=599,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _retention_exceeds_windows(self) -> "RateLimitSettings":
        largest = max(
            self.global_window_seconds,
            self.route_window_seconds,
            self.user_window_seconds,
        )
        if self.retention_seconds <= largest:
            raise ValueError(
                f"retention_seconds ({self.retention_seconds}) must exceed the "
                f"largest policy window ({largest})"
            )
        return self


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
