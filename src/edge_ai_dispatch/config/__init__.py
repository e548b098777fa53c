"""Configuration management for the dispatch layer."""

from .env_loader import EnvLoader
from .loader import ConfigLoader, load_config
from .schemas import (
    AppConfig,
    ClientConfig,
    GatewayConfig,
    RetryConfig,
    ToolLoopConfig,
)

__all__ = [
    "AppConfig",
    "ClientConfig",
    "ConfigLoader",
    "EnvLoader",
    "GatewayConfig",
    "RetryConfig",
    "ToolLoopConfig",
    "load_config",
]
