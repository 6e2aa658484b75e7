"""Server configuration read from MARKJI_* environment variables or a .env file.

Each concern is its own settings class with its own prefix
(MARKJI_HTTP_, MARKJI_RETRY_, MARKJI_LOG_, MARKJI_SERVER_).

    >>> from markji_mcp.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_attempts
    3
    >>> settings.base_url
    'https://www.markji.com/api/v1'
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, PositiveFloat, PositiveInt, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from markji_mcp.foundation.errors import TRANSIENT_CODES, ConfigurationError, ErrorCode

TOKEN_REQUIRED_MESSAGE = (
    "MARKJI_TOKEN environment variable is required. "
    "Please add it to the MCP server configuration."
)


class HttpSettings(BaseSettings):
    """HTTP client configuration."""

    model_config = SettingsConfigDict(env_prefix="MARKJI_HTTP_", extra="ignore")

    timeout: PositiveFloat = Field(default=30.0, description="Request timeout in seconds")
    user_agent: str = "markji-mcp/1.2.0"


class RetrySettings(BaseSettings):
    """Retry configuration for remote calls."""

    model_config = SettingsConfigDict(env_prefix="MARKJI_RETRY_", extra="ignore")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    base_delay: PositiveFloat = Field(default=1.0, description="Delay before the first retry, in seconds")
    multiplier: PositiveFloat = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: PositiveFloat = Field(default=30.0, description="Maximum delay in seconds")
    jitter: bool = False
    retryable_codes: frozenset[ErrorCode] = TRANSIENT_CODES


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="MARKJI_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ServerSettings(BaseSettings):
    """MCP server configuration."""

    model_config = SettingsConfigDict(env_prefix="MARKJI_SERVER_", extra="ignore")

    name: str = "markji-server"
    transport: Literal["stdio", "sse", "streamable-http"] = "stdio"
    host: str = "127.0.0.1"
    port: PositiveInt = 8080


class MarkjiSettings(BaseSettings):
    """Top-level settings; the token is the only value without a default.

    For instance:
        MARKJI_TOKEN=abc123
        MARKJI_BASE_URL=https://www.markji.com/api/v1
        MARKJI_HTTP_TIMEOUT=60
        MARKJI_RETRY_BASE_DELAY=0.5
        MARKJI_SERVER_TRANSPORT=sse
    """

    model_config = SettingsConfigDict(
        env_prefix="MARKJI_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    token: SecretStr | None = Field(default=None, description="Markji API token")
    base_url: str = "https://www.markji.com/api/v1"

    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def require_token(self) -> str:
        """Return the API token or raise ConfigurationError when unset."""
        if self.token is None or not self.token.get_secret_value():
            raise ConfigurationError(TOKEN_REQUIRED_MESSAGE)
        return self.token.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> MarkjiSettings:
    """Process-wide settings, read once."""
    return MarkjiSettings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
