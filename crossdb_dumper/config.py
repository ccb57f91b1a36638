"""
Configuration loading and validation for Cross-Database Dumper.
"""

import os
import re
from typing import Any, Optional

import yaml

from .models import Dialect


class ConfigLoader:
    """Loads and validates configuration from YAML file."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')
    SECTIONS = ('source', 'target', 'dump', 'output', 'logging')

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config = self._load_config() if config_path else {}

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "ConfigLoader":
        """Build a loader from an in-memory mapping (env vars are still resolved)."""
        loader = cls()
        loader.config = loader._resolve_env_vars(config)
        return loader

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"Configuration file '{self.config_path}' must contain a mapping")

        return self._resolve_env_vars(config)

    def _resolve_env_vars(self, obj: Any) -> Any:
        """Recursively resolve environment variables in config."""
        if isinstance(obj, str):
            matches = self.ENV_VAR_PATTERN.findall(obj)
            for match in matches:
                env_value = os.environ.get(match, '')
                obj = obj.replace(f'${{{match}}}', env_value)
            return obj
        elif isinstance(obj, dict):
            return {k: self._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        return obj

    def _section(self, name: str) -> dict[str, Any]:
        section = self.config.setdefault(name, {})
        if section is None:
            section = self.config[name] = {}
        return section

    def get_source(self) -> dict[str, Any]:
        """Get source database settings."""
        source = self._section('source')
        if 'dialect' not in source:
            source['dialect'] = Dialect.SQLITE.value
        Dialect.parse(source['dialect'])
        return source

    def get_target(self) -> str:
        """Get target dialect name."""
        target = self.config.get('target')
        if isinstance(target, dict):
            target = target.get('dialect')
        if not target:
            raise ValueError("No target dialect configured")
        return Dialect.parse(target).value

    def get_dump_settings(self) -> dict[str, Any]:
        """Get dump settings."""
        return self._section('dump')

    def get_output_settings(self) -> dict[str, Any]:
        """Get output settings."""
        return self._section('output')

    def get_logging_settings(self) -> dict[str, Any]:
        """Get logging settings."""
        return self._section('logging')

    def apply_overrides(self, section: str, values: dict[str, Any]) -> None:
        """Merge non-None values into a section (used for CLI flags)."""
        if section == 'target':
            if values.get('dialect') is not None:
                self.config['target'] = {'dialect': values['dialect']}
            return
        target = self._section(section)
        for key, value in values.items():
            if value is not None:
                target[key] = value
