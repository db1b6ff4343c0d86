"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are read once at startup and frozen into a ``RelayConfig`` that is
passed explicitly to the rate limiter, shard selector and dispatcher.
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


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=False)


def _build_relay_settings() -> "RelaySettings":
    return RelaySettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def split_csv(raw: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Order is preserved and duplicates are kept, since endpoint order defines
    shard indices.

    Examples:
        >>> split_csv("a, b ,,c")
        ['a', 'b', 'c']
        >>> split_csv(None)
        []
    """
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


class RelaySettings(BaseSettings):
    """Relay behaviour: credentials, limits, endpoints and failover."""

    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    webhook_urls: str | None = Field(
        None,
        description="Comma-separated, ordered list of outbound webhook URLs",
    )

    short_limit: int = Field(12, ge=1, description="Requests allowed per short window")
    short_window_seconds: int = Field(60, ge=1, description="Short window size in seconds")
    long_limit: int = Field(500, ge=1, description="Requests allowed per long window")
    long_window_seconds: int = Field(
        86400,
        ge=1,
        description="Long window size in seconds (86400 aligns with UTC days)",
    )

    max_attempts: int = Field(3, ge=1, description="Maximum endpoints tried per request")
    attempt_timeout_seconds: float = Field(
        5.0,
        gt=0,
        description="Timeout for a single outbound webhook attempt",
    )
    short_circuit_statuses: str | None = Field(
        None,
        description=(
            "Comma-separated HTTP statuses that stop failover immediately "
            "(e.g. 413). Empty means every non-2xx fails over."
        ),
    )
    fail_open: bool = Field(
        False,
        description="Admit requests when the counter store is unreachable",
    )
    counter_backend: str = Field(
        "redis",
        description="Counter store backend: 'redis' or 'memory'",
    )

    max_content_chars: int = Field(1900, ge=1, description="Content cap before forwarding")
    max_embeds: int = Field(10, ge=0, description="Maximum rich-content blocks per message")
    max_body_bytes: int = Field(65536, ge=1, description="Maximum inbound body size")
    max_identity_chars: int = Field(128, ge=1, description="Maximum identity length")
    username: str = Field("Relay Protector", description="Display name on outbound messages")
    trust_forwarded_for: bool = Field(
        True,
        description="Derive the fallback identity from X-Forwarded-For when present",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Counter store connection settings."""

    url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    socket_timeout_seconds: float = Field(
        2.0,
        gt=0,
        description="Socket connect/read timeout for counter operations",
    )
    key_prefix: str = Field("relay", description="Namespace for counter keys")

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, ge=0, description="Rotate log file at this size (0 disables)")
    backup_count: int = Field(5, ge=0, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    relay: RelaySettings = Field(default_factory=_build_relay_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


@dataclass(frozen=True)
class RelayConfig:
    """Immutable, process-wide relay configuration.

    Built once from ``Settings`` and handed by reference to the core
    components. Nothing in the core reads the environment directly.
    """

    api_keys: frozenset[str]
    endpoints: tuple[str, ...]
    short_limit: int = 12
    short_window_seconds: int = 60
    long_limit: int = 500
    long_window_seconds: int = 86400
    max_attempts: int = 3
    attempt_timeout_seconds: float = 5.0
    short_circuit_statuses: frozenset[int] = frozenset()
    fail_open: bool = False
    max_content_chars: int = 1900
    max_embeds: int = 10
    max_body_bytes: int = 65536
    max_identity_chars: int = 128
    username: str = "Relay Protector"
    trust_forwarded_for: bool = True

    @classmethod
    def from_settings(cls, relay: RelaySettings) -> "RelayConfig":
        """Freeze env-backed relay settings into a ``RelayConfig``.

        Raises:
            ValueError: If a short-circuit status is not an integer.
        """
        return cls(
            api_keys=frozenset(split_csv(relay.api_keys)),
            endpoints=tuple(split_csv(relay.webhook_urls)),
            short_limit=relay.short_limit,
            short_window_seconds=relay.short_window_seconds,
            long_limit=relay.long_limit,
            long_window_seconds=relay.long_window_seconds,
            max_attempts=relay.max_attempts,
            attempt_timeout_seconds=relay.attempt_timeout_seconds,
            short_circuit_statuses=frozenset(
                int(status) for status in split_csv(relay.short_circuit_statuses)
            ),
            fail_open=relay.fail_open,
            max_content_chars=relay.max_content_chars,
            max_embeds=relay.max_embeds,
            max_body_bytes=relay.max_body_bytes,
            max_identity_chars=relay.max_identity_chars,
            username=relay.username,
            trust_forwarded_for=relay.trust_forwarded_for,
        )


# Global settings instance - composed from domain-specific settings
settings = Settings()
