"""Environment-based configuration using pydantic-settings.

Provides the defaults that strategy factories fall back on when the caller
does not pass an explicit value, plus logging configuration.

Example:
    >>> from backoffkit.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_attempts is None
    True
    >>> settings.logging.level
    'WARNING'

    # Or with environment variables:
    # BACKOFFKIT_RETRY_MAX_ATTEMPTS=5
    # BACKOFFKIT_RETRY_DELAYS_ENABLED=false
    # BACKOFFKIT_LOG_FORMAT=json
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, NonNegativeFloat, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backoffkit.foundation.units import Unit


class RetrySettings(BaseSettings):
    """Defaults applied by the strategy factories."""

    model_config = SettingsConfigDict(
        env_prefix="BACKOFFKIT_RETRY_",
        extra="ignore",
    )

    max_attempts: Annotated[int, Field(ge=0)] | None = Field(default=None, description="Attempt ceiling, None for unlimited")
    max_delay: NonNegativeFloat | None = Field(default=None, description="Upper bound for any single delay")
    unit: Unit = Unit.SECONDS
    jitter: bool = Field(default=True, description="Apply full jitter in factories that allow it")
    delays_enabled: bool = Field(default=True, description="When off, every retry happens immediately")
    retries_enabled: bool = Field(default=True, description="When off, only the first attempt is made")

    @field_validator("unit", mode="before")
    @classmethod
    def _parse_unit(cls, v: object) -> Unit:
        """Accept short aliases like 'ms' as well as full unit names."""
        return Unit.parse(v)  # type: ignore[arg-type]


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BACKOFFKIT_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["json", "text"] = "text"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class BackoffkitSettings(BaseSettings):
    """Root settings for backoffkit.

    Loads configuration from environment variables with the BACKOFFKIT_ prefix.
    Supports nested configuration and .env files.

    Example environment variables:
        BACKOFFKIT_DEBUG=true
        BACKOFFKIT_RETRY_MAX_ATTEMPTS=5
        BACKOFFKIT_RETRY_UNIT=ms
        BACKOFFKIT_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="BACKOFFKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def testing_overrides_active(self) -> bool:
        """Whether delays or retries have been switched off globally."""
        return not (self.retry.delays_enabled and self.retry.retries_enabled)


@lru_cache(maxsize=1)
def get_settings() -> BackoffkitSettings:
    """Get the global settings instance (cached)."""
    return BackoffkitSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
