"""
Configuration file loading.

Loads ``config.yaml`` and an optional ``config.{env}.yaml`` overlay.
"""

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from bucketfeed.config.resolver import resolve_config
from bucketfeed.exceptions import ConfigurationError


class Config:
    """bucketfeed configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.input = data.get("input", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self.data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> "Iterator[str]":
        return iter(self.data)

    def validate(self) -> None:
        """Validate configuration structure."""
        if not isinstance(self.data, dict):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(self.data).__name__}")

        section = self.data.get("input")
        if section is None:
            raise ConfigurationError("Configuration is missing the 'input' section")
        if not isinstance(section, dict):
            raise ConfigurationError(f"Configuration 'input' must be a mapping, got {type(section).__name__}")

        logging_section = self.data.get("logging")
        if logging_section is not None and not isinstance(logging_section, dict):
            raise ConfigurationError(
                f"Configuration 'logging' must be a mapping, got {type(logging_section).__name__}"
            )


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load bucketfeed configuration.

    Args:
        project_path: Directory holding config.yaml (default: current directory)
        env: Environment name; selects the config.{env}.yaml overlay

    Returns:
        Config instance with merged configuration

    Raises:
        ConfigurationError: If the file is missing or is not valid YAML
    """
    if project_path is None:
        project_path = Path.cwd()
    env = env or os.environ.get("BUCKETFEED_ENV", "dev")

    base_config_path = Path(project_path) / "config.yaml"
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}\n"
            f"  Suggestion: Create a config.yaml with an 'input' section"
        )

    config_data = _read_yaml(base_config_path)

    env_config_path = Path(project_path) / f"config.{env}.yaml"
    if env_config_path.is_file():
        _merge_dict(config_data, _read_yaml(env_config_path))

    return Config(resolve_config(config_data, env))


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigurationError(f"Error parsing {path.name}{where}: {e}", details={"file": str(path)}) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", details={"file": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def _merge_dict(base: dict, override: dict):
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
