"""Application settings using Pydantic."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LocalStoreSettings(BaseSettings):
    """Local task store configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TODO_LOCAL_",
        extra="ignore",
    )

    # "sqlite" persists to database_path, "memory" keeps tasks for the process only
    backend: Literal["sqlite", "memory"] = Field(default="sqlite")
    database_path: str = Field(default=".todorepo/tasks.db")


class RemoteSettings(BaseSettings):
    """Remote task source configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TODO_REMOTE_",
        extra="ignore",
    )

    # "http" talks to the task service API, "simulated" is an in-process fake
    backend: Literal["http", "simulated"] = Field(default="http")
    base_url: str = Field(default="http://127.0.0.1:8000")
    api_key: Optional[SecretStr] = Field(default=None)
    timeout: float = Field(default=10.0)
    # Artificial delay of the in-process fake, in seconds
    latency: float = Field(default=0.0)
    # Start the in-process fake in the unavailable state
    unavailable: bool = Field(default=False)


class RepositorySettings(BaseSettings):
    """Tasks repository behaviour."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TODO_REPOSITORY_",
        extra="ignore",
    )

    # Fail forced refreshes on remote outage instead of reading local
    strict_refresh: bool = Field(default=False)


class ServerSettings(BaseSettings):
    """Task service API configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TODO_SERVER_",
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    api_key: Optional[SecretStr] = Field(default=None)
    # Serve tasks from this SQLite file; in memory when unset
    database_path: Optional[str] = Field(default=None)
    # Artificial delay added to every in-memory operation, in seconds
    latency: float = Field(default=0.0)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TODO_",
        extra="ignore",
    )

    debug: bool = Field(default=False)
    log_level: str = Field(default="WARNING")

    # Nested settings - manually create to avoid env prefix issues
    @property
    def local(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def repository(self) -> RepositorySettings:
        return RepositorySettings()

    @property
    def server(self) -> ServerSettings:
        return ServerSettings()


@lru_cache
def get_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
