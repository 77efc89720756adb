"""Configuration module using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WindowSettings(BaseModel):
    """Raw window definition as it appears in configuration."""

    window_seconds: int = Field(gt=0)
    max_count: int = Field(gt=0)


def _default_windows() -> dict[str, WindowSettings]:
    return {
        "burst": WindowSettings(window_seconds=60, max_count=20),
        "sustained": WindowSettings(window_seconds=3600, max_count=100),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Counter store
    store_backend: Literal["redis", "memory"] = "redis"
    key_prefix: str = "quota:"  # Namespace inside a shared store

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_mode: Literal["standalone", "sentinel"] = "standalone"
    redis_sentinel_hosts: list[str] = []  # host:port entries
    redis_sentinel_name: str = "mymaster"
    redis_password: str | None = None
    redis_socket_timeout: float = 2.0
    redis_socket_connect_timeout: float = 2.0
    redis_max_connections: int = 20

    # Policy
    failure_mode: Literal["open", "closed"] = "open"
    default_windows: dict[str, WindowSettings] = Field(default_factory=_default_windows)
    tenant_overrides_path: str | None = None  # JSON file of per-tenant windows

    # Logging
    log_level: str = "INFO"

    @field_validator("default_windows")
    @classmethod
    def _require_windows(cls, value: dict[str, WindowSettings]) -> dict[str, WindowSettings]:
        if not value:
            raise ValueError("at least one default window must be configured")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for quick access
settings = get_settings()
