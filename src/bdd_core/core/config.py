import os
import copy
import yaml
import json
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

WHITESPACE_POLICIES = ("tolerant", "strict")


class ConfigManager:
    """Manages configuration for BDD Core"""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config = self._load_config()
        self._validate()

    def _get_default_config_path(self) -> Path:
        """Get default configuration path"""
        # Check environment variable first
        if env_path := os.getenv("BDD_CORE_CONFIG"):
            return Path(env_path)

        # Check common locations
        locations = [
            Path.cwd() / "bdd-core.yaml",
            Path.cwd() / ".bdd-core" / "config.yaml",
            Path.home() / ".bdd-core" / "config.yaml",
        ]

        for location in locations:
            if location.exists():
                return location

        # Return default location
        return Path.home() / ".bdd-core" / "config.yaml"

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        config = self._get_default_config()
        if not self.config_path.exists():
            return config

        with open(self.config_path, 'r') as f:
            if self.config_path.suffix in ('.yaml', '.yml'):
                loaded = yaml.safe_load(f)
            elif self.config_path.suffix == '.json':
                loaded = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported config format: {self.config_path.suffix}")

        if loaded is None:
            return config
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {self.config_path}")

        return self._merge(config, loaded)

    @classmethod
    def _merge(cls, base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in updates.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = cls._merge(base[key], value)
            else:
                base[key] = value
        return base

    def _validate(self) -> None:
        whitespace = self.get("steps.whitespace")
        if whitespace not in WHITESPACE_POLICIES:
            raise ConfigurationError(
                f"Unsupported whitespace policy: {whitespace!r} "
                f"(expected one of {', '.join(WHITESPACE_POLICIES)})"
            )

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return copy.deepcopy({
            "general": {
                "log_level": "INFO",
            },
            "steps": {
                "whitespace": "tolerant",  # tolerant, strict
                "paths": [],
            },
            "helpers": {},
            "report": {
                "formats": [],  # html, json, junit
                "output_dir": "test-results",
            },
        })

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def get_module_config(self, module_name: str) -> Dict[str, Any]:
        """Get configuration for a specific module"""
        return self.get(module_name, {})
