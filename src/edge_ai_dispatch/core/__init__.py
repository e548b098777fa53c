"""Core error types and error handling."""

from .exceptions import (
    AIError,
    AIErrorCode,
    CLIError,
    ConfigError,
    DispatchError,
    ToolRegistryError,
)

__all__ = [
    "AIError",
    "AIErrorCode",
    "CLIError",
    "ConfigError",
    "DispatchError",
    "ToolRegistryError",
]
