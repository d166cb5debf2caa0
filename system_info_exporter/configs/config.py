"""Configuration management system for system-info-exporter."""

import logging
import os
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Mapping

from system_info_exporter.configs.config_io import load_json_file, load_yaml_file
from system_info_exporter.configs.defaults import (
    GpuSettings,
    MetricsEnabled,
    MetricsSettings,
    ServerSettings,
)
from system_info_exporter.utils.errors import ConfigError

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "APP__"
ENV_SEPARATOR = "__"
DEFAULT_CONFIG_DIR = "config"
_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class Config:
    """Unified configuration container for system-info-exporter."""

    def __init__(self, config_dict: dict[str, Any] | None = None):
        """Initialize configuration.

        Args:
            config_dict: Optional dictionary to use as base (shallow copy)
        """
        self.config = (config_dict or {}).copy()

    def update(self, config_dict: Mapping[str, Any]) -> None:
        """Deep-merge provided values into the configuration.

        Args:
            config_dict: Dictionary with configuration overrides
        """
        self.config = _deep_merge(self.config, config_dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Configuration as dictionary
        """
        return dict(self.config)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Manages loading configuration files."""

    @staticmethod
    def load_yaml(filepath: str) -> Config:
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config object
        """
        return Config(load_yaml_file(filepath))

    @staticmethod
    def load_json(filepath: str) -> Config:
        """Load configuration from JSON file.

        Args:
            filepath: Path to JSON configuration file

        Returns:
            Config object
        """
        return Config(load_json_file(filepath))

    @staticmethod
    def load_or_default(
        filepath: str | None = None,
        default_config: dict[str, Any] | None = None,
    ) -> Config:
        """Load configuration from file or return defaults.

        Args:
            filepath: Optional path to configuration file
            default_config: Optional default config dict if file not found

        Returns:
            Config object (loaded from file or defaults)
        """
        if filepath and os.path.exists(filepath):
            if filepath.endswith(".yaml") or filepath.endswith(".yml"):
                loaded = ConfigManager.load_yaml(filepath)
            elif filepath.endswith(".json"):
                loaded = ConfigManager.load_json(filepath)
            else:
                raise ConfigError(f"Unsupported config file type: {filepath}")
            if default_config:
                base = Config(default_config)
                base.update(loaded.config)
                return base
            return loaded
        return Config(default_config or {})


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Turn ``APP__SECTION__KEY=value`` variables into a nested dict."""
    overrides: dict[str, Any] = {}
    for name, value in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX):].split(ENV_SEPARATOR) if part]
        if not path:
            continue
        node = overrides
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[path[-1]] = value
    return overrides


def _coerce(value: Any, default: Any, key: str) -> Any:
    """Convert ``value`` to the type of ``default`` (env values arrive as str)."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigError(f"{key}: expected a boolean, got {value!r}")
    if isinstance(default, (int, float)):
        if isinstance(value, bool):
            raise ConfigError(f"{key}: expected a number, got {value!r}")
        try:
            return type(default)(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key}: expected a number, got {value!r}") from exc
    if isinstance(default, list):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise ConfigError(f"{key}: expected a list, got {value!r}")
    if isinstance(default, str):
        if isinstance(value, (dict, list)):
            raise ConfigError(f"{key}: expected a string, got {value!r}")
        return str(value)
    return value


def _build_section(section_cls: type, data: Any, prefix: str) -> Any:
    """Instantiate a settings dataclass from a (possibly partial) mapping."""
    section = section_cls()
    if data is None:
        return section
    if not isinstance(data, Mapping):
        raise ConfigError(f"{prefix}: expected a mapping, got {data!r}")

    known = {f.name for f in fields(section_cls)}
    for key, value in data.items():
        dotted = f"{prefix}.{key}"
        if key not in known:
            LOGGER.warning("Ignoring unknown config key: %s", dotted)
            continue
        default = getattr(section, key)
        if is_dataclass(default):
            setattr(section, key, _build_section(type(default), value, dotted))
        else:
            setattr(section, key, _coerce(value, default, dotted))
    return section


@dataclass
class Settings:
    """Effective exporter settings."""

    server: ServerSettings = field(default_factory=ServerSettings)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)
    gpu: GpuSettings = field(default_factory=GpuSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """Build settings from a nested mapping; missing keys keep defaults.

        Raises:
            ConfigError: If a value cannot be converted to the expected type
                or a GPU duration is out of range
        """
        settings = cls()
        for key, value in data.items():
            if key not in {f.name for f in fields(cls)}:
                LOGGER.warning("Ignoring unknown config section: %s", key)
                continue
            section_cls = type(getattr(settings, key))
            setattr(settings, key, _build_section(section_cls, value, key))

        if settings.gpu.timeout_seconds <= 0:
            raise ConfigError(
                f"gpu.timeout_seconds: must be greater than 0, got {settings.gpu.timeout_seconds}"
            )
        if settings.gpu.cache_max_age_seconds < 0:
            raise ConfigError(
                "gpu.cache_max_age_seconds: must not be negative, "
                f"got {settings.gpu.cache_max_age_seconds}"
            )
        return settings

    @property
    def enabled(self) -> MetricsEnabled:
        return self.metrics.enabled

    @classmethod
    def load(
        cls,
        config_dir: str = DEFAULT_CONFIG_DIR,
        config_file: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Load settings from layered sources.

        Later sources win: ``<config_dir>/default.yaml``,
        ``<config_dir>/local.yaml``, ``config_file``, then ``APP__*``
        environment variables.

        Args:
            config_dir: Directory holding default.yaml / local.yaml (both optional)
            config_file: Optional explicit YAML or JSON file
            env: Environment mapping (default: os.environ)

        Returns:
            Settings

        Raises:
            ConfigError: If a file is unreadable or a value has the wrong type
        """
        if config_file and not os.path.exists(config_file):
            raise ConfigError(f"Config file not found: {config_file}")

        merged = Config()
        for path in (
            os.path.join(config_dir, "default.yaml"),
            os.path.join(config_dir, "local.yaml"),
            config_file,
        ):
            if path and os.path.exists(path):
                LOGGER.debug("Loading config from %s", path)
                merged.update(ConfigManager.load_or_default(path).config)

        merged.update(env_overrides(os.environ if env is None else env))
        return cls.from_dict(merged.to_dict())
