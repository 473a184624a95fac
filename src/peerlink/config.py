"""Configuration module using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Peer settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PEERLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Addressing
    stream_scheme: str = "wss"
    send_scheme: str = "https"

    # HTTP sender
    http_timeout_connect: float = 10.0
    http_timeout_read: float = 30.0
    http_timeout_write: float = 30.0

    # Streaming socket
    ws_open_timeout: float | None = 10.0
    ws_max_size: int | None = 2**20  # 1 MiB per frame

    # Delivery queue: "discard" drops buffered messages when the stream ends
    buffer_policy: Literal["discard", "preserve"] = "discard"

    # Logging
    log_level: str = "INFO"

    # Development relay
    relay_host: str = "127.0.0.1"
    relay_port: int = 8000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for quick access
settings = get_settings()
