"""
Centralized Configuration Management

This module provides centralized configuration management for the relay bot.
It loads and validates configuration from environment variables and .env files.
The homeserver, username and password always come from the command line; these
settings only tune behaviour around them.
"""

from typing import Optional

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class MatrixConfig(BaseSettings):
    """Matrix-specific configuration."""

    model_config = SettingsConfigDict(env_prefix="MATRIX_")

    device_name: str = "matrix-relay-bot"
    store_path: str = ""

    # Long-poll timeout passed to /sync, in milliseconds
    sync_timeout_ms: int = 30000
    # Timeout for plain HTTP calls such as the room directory
    request_timeout: float = 30.0


class RelayConfig(BaseSettings):
    """Room linking and relay configuration."""

    model_config = SettingsConfigDict(env_prefix="RELAY_")

    shadow_tag: str = "(Tor)"
    command_prefix: str = "!"
    max_counterpart_matches: int = 2
    send_timeout: float = 30.0
    discovery_attempts: int = 3


class InviteConfig(BaseSettings):
    """Invite auto-join retry configuration."""

    model_config = SettingsConfigDict(env_prefix="INVITE_")

    initial_delay: float = 2.0
    backoff_factor: float = 2.0
    max_delay: float = 3600.0


class AppConfig(BaseSettings):
    """
    Centralized application configuration with nested sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = None

    # Nested configuration sections
    matrix: MatrixConfig = MatrixConfig()
    relay: RelayConfig = RelayConfig()
    invite: InviteConfig = InviteConfig()


_homeserver_url_adapter = TypeAdapter(AnyHttpUrl)


def validate_homeserver_url(url: str) -> str:
    """
    Check that a homeserver URL is an absolute http(s) URL.

    Returns the URL without a trailing slash so request paths can be appended.

    Raises:
        ConfigurationError: If the URL is malformed.
    """
    try:
        _homeserver_url_adapter.validate_python(url)
    except ValidationError as e:
        raise ConfigurationError(f"Couldn't parse the homeserver URL '{url}': {e}") from e
    return url.rstrip("/")


# Global settings instance
def create_settings() -> AppConfig:
    """Create settings instance from environment variables and .env files only."""
    return AppConfig()


settings = create_settings()


def get_settings() -> AppConfig:
    """Get the global settings instance."""
    return settings
