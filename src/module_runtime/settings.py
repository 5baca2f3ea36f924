"""Application configuration using Pydantic Settings.

This module centralizes runtime configuration for the module runtime. Values
can be provided via environment variables (preferred) or fall back to the
defaults below. A ``Settings`` instance is intended to be retrieved via
``get_settings`` which caches the object for reuse across the process.

Environment variable prefix: ``MODULE_RUNTIME_`` (e.g. ``MODULE_RUNTIME_PORT``).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings.

    Attributes map directly to environment variables using the ``MODULE_RUNTIME_``
    prefix (case-insensitive). For example, ``request_timeout`` <- ``MODULE_RUNTIME_REQUEST_TIMEOUT``.
    """

    # Status server settings
    host: str = Field(
        default="0.0.0.0",
        description="Host interface to bind the status server",
    )  # fmt: skip
    port: int = Field(
        default=8080,
        description="Status server port",
    )  # fmt: skip
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    reload: bool = Field(
        default=False,
        description="Enable auto-reload in development",
    )  # fmt: skip
    environment: Literal["development", "production", "test"] = Field(
        default="production",
        description="Environment handed to module init hooks",
    )  # fmt: skip

    # Resilient API client settings
    # Module endpoints that are plain paths (e.g. "/api") are resolved against this URL.
    api_base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL for relative module endpoints",
    )  # fmt: skip
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-attempt request timeout in seconds",
    )  # fmt: skip
    retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per endpoint before failing over",
    )  # fmt: skip
    retry_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base delay in seconds for exponential backoff between attempts",
    )  # fmt: skip
    cache_ttl: float = Field(
        default=300.0,
        gt=0,
        description="Lifetime in seconds of cached GET responses",
    )  # fmt: skip

    # Loader and error boundary settings
    loader_max_retries: int = Field(
        default=3,
        ge=0,
        description="Automatic load retries performed by a module loader",
    )  # fmt: skip
    loader_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base delay in seconds for loader retry backoff",
    )  # fmt: skip
    boundary_max_retries: int = Field(
        default=3,
        ge=0,
        description="Manual retries offered after a render failure",
    )  # fmt: skip

    # Event bus settings
    event_history_size: int = Field(
        default=100,
        ge=0,
        description="Number of recent lifecycle events kept in memory",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        v_upper = str(v).upper()

        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    model_config = SettingsConfigDict(
        env_prefix="MODULE_RUNTIME_",  # Prefix for env vars
        case_sensitive=False,
        extra="ignore",  # Ignore unexpected env vars
        env_file=".env",  # Optional .env loading (if present)
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
