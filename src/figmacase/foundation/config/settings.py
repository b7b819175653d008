"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from figmacase.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.cache.ttl
    300.0

    # Or with environment variables:
    # FIGMA_ACCESS_TOKEN=figd_...
    # FIGMACASE_CACHE_TTL=60
    # FIGMACASE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import (
    AliasChoices,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError


class ApiSettings(BaseSettings):
    """Upstream Figma API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIGMACASE_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("FIGMA_ACCESS_TOKEN", "FIGMACASE_API_TOKEN"),
        description="Personal access token sent as X-Figma-Token",
    )
    base_url: str = Field(default="https://api.figma.com/v1", description="API base URL")
    timeout: PositiveFloat = Field(default=30.0, description="Per-request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def require_token(self) -> str:
        """Return the credential or raise ConfigurationError when absent."""
        if self.token is None or not self.token.get_secret_value().strip():
            raise ConfigurationError("FIGMA_ACCESS_TOKEN environment variable is required")
        return self.token.get_secret_value()


class CacheSettings(BaseSettings):
    """Cache-related configuration."""

    model_config = SettingsConfigDict(env_prefix="FIGMACASE_CACHE_", extra="ignore")

    enabled: bool = True
    ttl: PositiveFloat = Field(default=300.0, description="Entry lifetime in seconds")
    max_entries: PositiveInt = Field(default=500, description="Max cache entries before LRU eviction")


class HealthSettings(BaseSettings):
    """Health monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="FIGMACASE_HEALTH_", extra="ignore")

    interval: PositiveFloat = Field(default=10.0, description="Seconds between health ticks")
    max_connection_errors: PositiveInt = Field(
        default=5,
        description="Connection error count at which the server reports unhealthy",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="FIGMACASE_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class FigmacaseSettings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables with FIGMACASE_ prefix;
    the credential itself is read from FIGMA_ACCESS_TOKEN.

    Example environment variables:
        FIGMA_ACCESS_TOKEN=figd_xxx
        FIGMACASE_DEBUG=true
        FIGMACASE_CACHE_TTL=60
        FIGMACASE_HEALTH_INTERVAL=30
    """

    model_config = SettingsConfigDict(
        env_prefix="FIGMACASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Verbose health reporting")
    server_name: str = "figma-mcp-server"
    server_version: str = "1.0.0"

    api: ApiSettings = Field(default_factory=ApiSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def has_token(self) -> bool:
        return self.api.token is not None


@lru_cache(maxsize=1)
def get_settings() -> FigmacaseSettings:
    """Get the global settings instance (cached)."""
    return FigmacaseSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
