"""Configuration load and config types."""

from .config import Config, ConfigManager, Settings, env_overrides
from .config_io import load_json_file, load_yaml_file
from .defaults import GpuSettings, MetricsEnabled, MetricsSettings, ServerSettings

__all__ = [
    "load_yaml_file",
    "load_json_file",
    "Config",
    "ConfigManager",
    "Settings",
    "env_overrides",
    "GpuSettings",
    "MetricsEnabled",
    "MetricsSettings",
    "ServerSettings",
]
