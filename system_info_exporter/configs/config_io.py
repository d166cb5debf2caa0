"""Shared configuration file I/O (YAML/JSON load as dict)."""

import json
from typing import Any

import yaml

from system_info_exporter.utils.errors import ConfigError


def load_yaml_file(filepath: str) -> dict[str, Any]:
    """Load a YAML file into a dictionary.

    Args:
        filepath: Path to YAML file

    Returns:
        Loaded config as dict; empty dict if file is empty

    Raises:
        ConfigError: If the file is not valid YAML or its top level is not a mapping
    """
    with open(filepath, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {filepath}: {exc}") from exc
    return _as_mapping(data, filepath)


def load_json_file(filepath: str) -> dict[str, Any]:
    """Load a JSON file into a dictionary.

    Args:
        filepath: Path to JSON file

    Returns:
        Loaded config as dict; empty dict if file is empty
    """
    with open(filepath, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {filepath}: {exc}") from exc
    return _as_mapping(data, filepath)


def _as_mapping(data: Any, filepath: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {filepath} must be a mapping")
    return data
