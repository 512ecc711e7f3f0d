"""YAML-backed analysis configuration (config/default_config.yaml)."""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "default_config.yaml"


def _section(name: str) -> property:
    def getter(self: 'Config') -> Dict[str, Any]:
        return self._config.get(name) or {}
    getter.__doc__ = f"The '{name}' section (empty dict when absent)."
    return property(getter)


class Config:
    """
    Analysis settings loaded from YAML, addressed with dot paths.

    Usage:
        config = Config("config/default_config.yaml")
        hop = config.get("spectral.hop_size", 512)
        config.set("transitions.phrase_beats", 32)
    """

    spectral = _section("spectral")
    mood = _section("mood")
    mix_points = _section("mix_points")
    transitions = _section("transitions")
    pipeline = _section("pipeline")
    logging = _section("logging")

    def __init__(self, config_path: Optional[str] = None):
        self.path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        if not self.path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.path}")

        self._config: Dict[str, Any] = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}

        log_file = self.get("logging.log_file")
        if log_file:
            self.set("logging.log_file", os.path.expanduser(log_file))

    def get(self, key_path: str, default: Any = None) -> Any:
        """Value at a dot path such as 'spectral.hop_size', or default."""
        node: Any = self._config
        for key in key_path.split('.'):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def set(self, key_path: str, value: Any) -> None:
        """Set a dot-path value, creating intermediate sections."""
        *parents, leaf = key_path.split('.')
        node = self._config
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value

    def save(self, output_path: str) -> None:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding="utf-8") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)


_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Process-wide Config; config_path only matters on the first call."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance
