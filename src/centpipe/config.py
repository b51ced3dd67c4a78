"""
Configuration management for the API client.

Supports configuration via environment variables and .env files.
"""

from typing import Callable, Optional

import httpx
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseSettings):
    """
    Configuration settings for the API client.

    Static settings can be configured via environment variables with the
    CENTPIPE_ prefix. The endpoint resolver and the HTTP transport are
    code-only settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="CENTPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    # Endpoint settings
    addr: Optional[str] = Field(
        default=None,
        description="Server API endpoint, e.g. http://127.0.0.1:8000/api"
    )
    get_addr: Optional[Callable[[], str]] = Field(
        default=None,
        exclude=True,
        description="Called before every request to get the endpoint; overrides addr"
    )

    # Auth settings
    key: Optional[str] = Field(
        default=None,
        description="API key sent as 'Authorization: apikey <key>'"
    )

    # Transport settings
    http_client: Optional[httpx.AsyncClient] = Field(
        default=None,
        exclude=True,
        description="Custom HTTP client; a default one is built when unset"
    )
    timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Per-request timeout of the default HTTP client"
    )
    max_idle_connections: int = Field(
        default=100,
        ge=1,
        description="Idle keep-alive connections kept by the default HTTP client"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
