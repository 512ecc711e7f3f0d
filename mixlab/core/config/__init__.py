"""Environment-driven application settings."""

from .settings import Settings, LogLevel, RegistryMode, get_settings, reset_settings

__all__ = [
    "Settings",
    "LogLevel",
    "RegistryMode",
    "get_settings",
    "reset_settings",
]
