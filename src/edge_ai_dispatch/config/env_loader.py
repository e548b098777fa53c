"""Environment variable loading for the dispatch layer."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from edge_ai_dispatch.core.exceptions import ConfigError
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("config.env_loader")

# Unprefixed platform variables and the config keys they populate
PLATFORM_ENV_KEYS: dict[str, tuple[str, ...]] = {
    "AI_GATEWAY_ID": ("gateway", "gateway_id"),
    "CF_ACCOUNT_ID": ("gateway", "account_id"),
    "CF_AIG_TOKEN": ("gateway", "token"),
}

# Values that must stay strings even when they look numeric
STRING_KEYS = {("gateway", "account_id"), ("gateway", "token"), ("gateway", "gateway_id")}


class EnvLoader:
    """Loads and parses environment variables for configuration."""

    def __init__(
        self,
        env_prefix: str = "EDGE_AI_",
        env_paths: list[Path] | None = None,
        environ: dict[str, str] | None = None,
    ):
        """Initialize the environment loader.

        Args:
            env_prefix: Prefix for environment variables to load
            env_paths: Optional list of .env file paths to load (default: cwd)
            environ: Mapping to read instead of ``os.environ``
        """
        self.env_prefix = env_prefix
        self.env_paths = env_paths or [Path.cwd() / ".env", Path.cwd() / ".env.local"]
        self._environ = environ

    @property
    def environ(self) -> dict[str, str]:
        return self._environ if self._environ is not None else dict(os.environ)

    def load_env_files(self) -> None:
        """Load .env files into the process environment.

        Raises:
            ConfigError: If a .env file exists but cannot be loaded
        """
        loaded_any = False
        for env_path in self.env_paths:
            if not env_path.exists():
                continue
            try:
                # Later files override earlier ones
                load_dotenv(env_path, override=loaded_any)
            except Exception as e:
                raise ConfigError(f"Failed to load .env file {env_path}: {e}") from e
            logger.info(f"Loaded environment variables from {env_path}")
            loaded_any = True

        if not loaded_any:
            logger.debug("No .env files found to load")

    def get_config_from_env(self) -> dict[str, Any]:
        """Extract configuration from environment variables.

        ``EDGE_AI_CLIENT__TIMEOUT_MS=5000`` becomes ``{"client": {"timeout_ms": 5000}}``.
        Prefixed variables win over the platform variables.

        Raises:
            ConfigError: If environment variable parsing fails
        """
        config_data: dict[str, Any] = {}
        environ = self.environ

        try:
            for env_key, key_parts in PLATFORM_ENV_KEYS.items():
                value = environ.get(env_key)
                if value:
                    self._set_nested_value(config_data, list(key_parts), value)

            env_count = 0
            for key, value in environ.items():
                if not key.startswith(self.env_prefix):
                    continue
                key_parts = key[len(self.env_prefix) :].lower().split("__")
                self._set_nested_value(config_data, key_parts, value)
                env_count += 1

            if env_count:
                logger.debug(
                    f"Loaded {env_count} environment variables with prefix '{self.env_prefix}'"
                )
        except Exception as e:
            raise ConfigError(f"Failed to parse environment variables: {e}") from e

        return config_data

    def _set_nested_value(
        self, data: dict[str, Any], key_parts: list[str], value: str
    ) -> None:
        current = data
        for part in key_parts[:-1]:
            existing = current.setdefault(part, {})
            if not isinstance(existing, dict):
                logger.warning(
                    f"Cannot set nested value for {'.'.join(key_parts)}: {part} is not a dictionary"
                )
                return
            current = existing

        if tuple(key_parts) in STRING_KEYS:
            current[key_parts[-1]] = value
        else:
            current[key_parts[-1]] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert a string environment value to bool, int, float, list or string."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        if value == "null":
            return None

        try:
            if "." not in value and "e" not in value.lower():
                return int(value)
            return float(value)
        except ValueError:
            pass

        if "," in value:
            return [item.strip() for item in value.split(",") if item.strip()]

        return value
