"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # HTTP server settings
    host: str = "0.0.0.0"
    http_port: int = 8080

    # Routes
    endpoint_path: str = "/api/maritime/ais-stream"
    status_path: str = "/api/maritime/status"

    # Upstream AIS Stream service
    ais_stream_url: str = "wss://stream.aisstream.io/v0/stream"
    # None disables the open timeout; a stuck connection is only reaped by disconnect
    open_timeout: Optional[float] = None

    # Buffering
    message_buffer_capacity: int = Field(default=100, ge=1)
    status_recent_messages: int = Field(default=10, ge=1)

    # Shutdown settings
    shutdown_timeout: float = 5.0  # Seconds to wait for upstream sockets to close

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
