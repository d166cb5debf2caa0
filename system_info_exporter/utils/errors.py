"""Custom exceptions for system-info-exporter.

This module defines application-specific errors so callers can handle
missing or hung tools and configuration failures explicitly.
"""

from typing import Optional


class ExporterError(Exception):
    """Base exception for all system-info-exporter errors."""

    pass


class ConfigError(ExporterError):
    """Raised when configuration is invalid or a config file cannot be parsed."""

    pass


class ToolError(ExporterError):
    """Base class for failures of an external command-line tool."""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class ToolNotFoundError(ToolError):
    """Raised when the tool binary is not present in any candidate location."""

    pass


class ToolTimeoutError(ToolError):
    """Raised when the tool did not finish within its time budget."""

    pass


class ToolExecutionError(ToolError):
    """Raised when the tool exits non-zero or cannot be spawned."""

    pass
