"""Per-component log levels and formats from logging-config.yaml.

Resolution order for a component (cli, pipeline, tests, ...):
    1. LOG_LEVEL_<COMPONENT> / LOG_JSON_FORMAT_<COMPONENT>
    2. LOG_LEVEL / LOG_JSON_FORMAT (component 'default' only)
    3. components.<component> in the YAML file
    4. default_level
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_FILENAME = "logging-config.yaml"
TRUTHY = ('true', '1', 'yes')


def _find_config_file() -> Optional[Path]:
    # Walk up from the package towards the project root
    for parent in Path(__file__).resolve().parents[:5]:
        candidate = parent / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def _env_override(prefix: str, component: str) -> Optional[str]:
    value = os.getenv(f"{prefix}_{component.upper().replace('-', '_')}")
    if value is None and component == 'default':
        value = os.getenv(prefix)
    return value or None


class LoggingConfig:
    """Logging levels and JSON switches per component."""

    _instance: Optional['LoggingConfig'] = None

    def __init__(self, config_path: Optional[str] = None):
        path = Path(config_path) if config_path else _find_config_file()
        self._config: Dict[str, Any] = {}
        if path is not None and path.exists():
            self._config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    @classmethod
    def get_instance(cls) -> 'LoggingConfig':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    def _component(self, component: str) -> Dict[str, Any]:
        """Component entry normalized to a dict; a bare string is a level."""
        entry = (self._config.get('components') or {}).get(component)
        if isinstance(entry, str):
            return {'level': entry}
        return entry if isinstance(entry, dict) else {}

    def get_level(self, component: str = 'default') -> str:
        level = (
            _env_override('LOG_LEVEL', component)
            or self._component(component).get('level')
            or self._config.get('default_level', 'INFO')
        )
        return str(level).upper()

    def get_json_format(self, component: str = 'default') -> bool:
        env = _env_override('LOG_JSON_FORMAT', component)
        if env is not None:
            return env.lower() in TRUTHY
        return bool(self._component(component).get('json_format', False))

    def get_module_level(self, module_name: str) -> Optional[str]:
        """Level pinned for one module, e.g. mixlab.modules.analysis.tasks.spectral_analysis."""
        level = (self._config.get('modules') or {}).get(module_name)
        return str(level).upper() if level else None

    def get_library_levels(self) -> Dict[str, str]:
        """Levels for third-party loggers (librosa, numba)."""
        libraries = self._config.get('libraries') or {}
        return {name: str(level).upper() for name, level in libraries.items()}


def get_logging_config() -> LoggingConfig:
    return LoggingConfig.get_instance()
