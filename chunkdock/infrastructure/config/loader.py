"""
Configuration loading and saving utilities.

Settings are layered: dataclass defaults, then an optional YAML or JSON
file, then environment variables. ``PORT`` is honoured for hosting
platforms that inject it; every other variable carries the prefix.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

from .models import ApplicationConfig


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('true', '1', 'yes', 'on', 'enabled')


# (variable suffix, dotted config path, converter); later entries win
ENV_OVERRIDES: Tuple[Tuple[str, str, Callable[[str], Any]], ...] = (
    ("DEBUG", "debug", _parse_bool),
    ("ENVIRONMENT", "environment", str),
    ("HOST", "server.host", str),
    ("PORT", "server.port", int),
    ("LOG_LEVEL", "logging.level", str.upper),
    ("LOG_DIR", "logging.log_directory", str),
    ("UPLOAD_TIMEOUT", "upload.upload_timeout", float),
    ("SWEEP_INTERVAL", "upload.sweep_interval", float),
    ("HIGH_WATER_MARK", "upload.high_water_mark", int),
    ("LOW_WATER_MARK", "upload.low_water_mark", int),
    ("STAGING_DIR", "upload.staging_directory", str),
    ("TARGET_DIR", "upload.default_target_directory", str),
)


class ConfigLoader:
    """Configuration loader supporting YAML, JSON and environment sources."""

    def __init__(self, env_prefix: str = "CHUNKDOCK_") -> None:
        self._env_prefix = env_prefix

    def load_config(self, config_file: Optional[str] = None) -> ApplicationConfig:
        """
        Load configuration from file and environment variables.

        Raises:
            FileNotFoundError: ``config_file`` does not exist
            ValueError: the file or an environment value cannot be parsed,
                or the merged settings fail validation
        """
        file_data = self._read_file(config_file) if config_file else {}
        merged = self._merge_configs(file_data, self._load_from_environment())

        config = ApplicationConfig.from_dict(merged)
        config.config_file_path = config_file
        return config

    def save_config(self, config: ApplicationConfig, file_path: str, format: str = "yaml") -> None:
        """Write ``config`` as YAML or JSON, without the source file path."""
        data = config.to_dict()
        data.pop('config_file_path', None)

        fmt = format.lower()
        if fmt not in ("yaml", "json"):
            raise ValueError(f"Unsupported format: {format}")

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if fmt == "yaml":
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
                else:
                    json.dump(data, f, indent=2)
        except OSError as e:
            raise ValueError(f"Error writing configuration to {file_path}: {e}")

    def _read_file(self, file_path: str) -> Dict[str, Any]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        suffix = path.suffix.lower()
        if suffix in ('.yaml', '.yml'):
            parse: Callable[[Any], Any] = yaml.safe_load
            parse_error: Any = yaml.YAMLError
            kind = "YAML"
        elif suffix == '.json':
            parse, parse_error, kind = json.load, json.JSONDecodeError, "JSON"
        else:
            raise ValueError(f"Unsupported configuration file format: {path.suffix}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = parse(f)
        except parse_error as e:
            raise ValueError(f"Invalid {kind} in {file_path}: {e}")
        except OSError as e:
            raise ValueError(f"Error reading {file_path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {file_path} must be a mapping")
        return data

    def _load_from_environment(self) -> Dict[str, Any]:
        """Collect overrides from the environment as a nested dictionary."""
        overrides: Dict[str, Any] = {}

        port = os.getenv("PORT")
        if port is not None:
            self._apply("PORT", port, "server.port", int, overrides)

        for suffix, config_path, convert in ENV_OVERRIDES:
            name = f"{self._env_prefix}{suffix}"
            value = os.getenv(name)
            if value is not None:
                self._apply(name, value, config_path, convert, overrides)

        return overrides

    def _apply(
        self,
        name: str,
        value: str,
        config_path: str,
        convert: Callable[[str], Any],
        target: Dict[str, Any]
    ) -> None:
        try:
            converted = convert(value)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid value for {name}: {value} ({e})")

        *parents, leaf = config_path.split('.')
        for key in parents:
            target = target.setdefault(key, {})
        target[leaf] = converted

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries."""
        result = dict(base)

        for key, value in override.items():
            if isinstance(result.get(key), dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result
