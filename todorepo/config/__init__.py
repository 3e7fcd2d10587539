"""Configuration module."""

from .settings import (
    AppSettings,
    LocalStoreSettings,
    RemoteSettings,
    RepositorySettings,
    ServerSettings,
    get_settings,
    clear_settings_cache,
)

__all__ = [
    "AppSettings",
    "LocalStoreSettings",
    "RemoteSettings",
    "RepositorySettings",
    "ServerSettings",
    "get_settings",
    "clear_settings_cache",
]
