"""
Shared configuration management for the guild permissions service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PERMS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    postgres_dsn: str = Field(default="postgres://localhost:5432/permissions")
    redis_url: str = Field(default="redis://localhost:6379/0")
    directory_service_url: str = Field(default="http://localhost:8090")
    directory_timeout_seconds: float = Field(default=10.0)

    # Persistence
    store_backend: str = Field(default="postgres")
    store_timeout_seconds: float = Field(default=5.0)

    # Per-guild write serialization: "local" or "redis"
    lock_backend: str = Field(default="local")
    lock_timeout_seconds: float = Field(default=10.0)

    # Bot
    bot_owner_id: Optional[str] = Field(default=None)
    command_prefix: str = Field(default=";;")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
