"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Throttling settings are lenient on purpose: a value that cannot be parsed as an
integer falls back to its default, and a value <= 0 in either setting turns
throttling off.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


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
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


MAX_REQUESTS_DEFAULT = 1000
PERIOD_SECONDS_DEFAULT = 60

KEY_SOURCES = ("client", "forwarded")
TRUTHY = frozenset({"1", "true", "yes", "on"})
FALSY = frozenset({"0", "false", "no", "off"})


def _build_throttle_settings() -> "ThrottleSettings":
    """Build throttle settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    Static type checkers treat fields as constructor arguments, which is not
    how BaseSettings is intended to be used.
    """

    return ThrottleSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class ThrottleSettings(BaseSettings):
    """Request throttling configuration.

    Setting either limit to 0 or a negative number disables throttling.
    """

    max_requests: int = Field(
        MAX_REQUESTS_DEFAULT,
        description="Maximum number of requests allowed per window (per throttle key)",
    )
    period_seconds: int = Field(
        PERIOD_SECONDS_DEFAULT,
        description="Fixed window length in seconds",
    )
    key_source: Literal["client", "forwarded"] = Field(
        "client",
        description=(
            "Request attribute used as throttle key: the client network address, "
            "or the first X-Forwarded-For hop when running behind a trusted proxy"
        ),
    )
    fail_open: bool = Field(
        False,
        description="Allow requests when the counter store fails (default: respond 503)",
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )

    @field_validator("max_requests", "period_seconds", mode="before")
    @classmethod
    def _fallback_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        """Replace values that don't parse as integers with the field default."""
        default = cls.model_fields[info.field_name].default
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "config.invalid_value",
                extra={
                    "setting": info.field_name,
                    "value": str(value),
                    "fallback": default,
                },
            )
            return default

    @field_validator("key_source", mode="before")
    @classmethod
    def _fallback_key_source(cls, value: Any) -> Any:
        """Fall back to the client address for unknown key sources."""
        default = cls.model_fields["key_source"].default
        normalized = str(value).strip().lower() if value is not None else ""
        if not normalized:
            return default
        if normalized in KEY_SOURCES:
            return normalized
        logger.warning(
            "config.invalid_value",
            extra={"setting": "key_source", "value": str(value), "fallback": default},
        )
        return default

    @field_validator("fail_open", mode="before")
    @classmethod
    def _fallback_fail_open(cls, value: Any) -> Any:
        """Fall back to fail-closed for values that aren't recognisable booleans."""
        default = cls.model_fields["fail_open"].default
        if isinstance(value, bool):
            return value
        normalized = str(value).strip().lower() if value is not None else ""
        if not normalized:
            return default
        if normalized in TRUTHY:
            return True
        if normalized in FALSY:
            return False
        logger.warning(
            "config.invalid_value",
            extra={"setting": "fail_open", "value": str(value), "fallback": default},
        )
        return default


class StoreSettings(BaseSettings):
    """Shared counter store configuration."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Counter store backend (redis for shared state, memory for a single process)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    key_prefix: str = Field(
        "throttle:",
        description="Namespace prepended to every throttle key in the store",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Per-call deadline for counter store operations",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
