"""Shared utilities for system-info-exporter."""

from system_info_exporter.utils.errors import (
    ConfigError,
    ExporterError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)

__all__ = [
    "ExporterError",
    "ConfigError",
    "ToolError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolExecutionError",
]
