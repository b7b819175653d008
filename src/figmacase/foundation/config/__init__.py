"""Configuration via pydantic-settings."""

from .settings import (
    ApiSettings,
    CacheSettings,
    FigmacaseSettings,
    HealthSettings,
    LoggingSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "CacheSettings",
    "HealthSettings",
    "LoggingSettings",
    "FigmacaseSettings",
    "get_settings",
    "clear_settings_cache",
]
