"""Configuration loaded from MARKJI_* environment variables."""

from .settings import (
    TOKEN_REQUIRED_MESSAGE,
    HttpSettings,
    LoggingSettings,
    MarkjiSettings,
    RetrySettings,
    ServerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "MarkjiSettings", "HttpSettings", "RetrySettings", "LoggingSettings", "ServerSettings",
    "get_settings", "clear_settings_cache", "TOKEN_REQUIRED_MESSAGE",
]
