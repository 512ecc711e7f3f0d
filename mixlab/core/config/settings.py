"""
Settings - Application configuration using dataclasses.

Environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR
- LOG_JSON: true/false
- LOG_FILE: optional rotating log file
- SAMPLE_RATE: analysis sample rate for loaded files
- ANALYSIS_MAX_WORKERS: thread pool size for feature fan-out
- ANALYSIS_CONFIG: path to YAML analysis config
- REGISTRY_MODE: join, reject (duplicate analysis requests)
"""

import os
from enum import Enum
from typing import Optional
from dataclasses import dataclass, field


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RegistryMode(str, Enum):
    """How a second request for an in-flight track is handled."""
    JOIN = "join"
    REJECT = "reject"


@dataclass
class Settings:
    """Application settings from environment."""

    # Logging
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    )
    log_json: bool = field(
        default_factory=lambda: os.getenv("LOG_JSON", "false").lower() == "true"
    )
    log_file: Optional[str] = field(
        default_factory=lambda: os.getenv("LOG_FILE")
    )

    # Audio
    sample_rate: int = field(
        default_factory=lambda: int(os.getenv("SAMPLE_RATE", "44100"))
    )

    # Analysis
    max_workers: int = field(
        default_factory=lambda: int(os.getenv("ANALYSIS_MAX_WORKERS", "4"))
    )
    analysis_config: Optional[str] = field(
        default_factory=lambda: os.getenv("ANALYSIS_CONFIG")
    )
    registry_mode: RegistryMode = field(
        default_factory=lambda: RegistryMode(os.getenv("REGISTRY_MODE", "join").lower())
    )


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the environment is re-read."""
    global _settings
    _settings = None
