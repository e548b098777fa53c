"""Layered configuration: packaged defaults, then YAML files, then the environment."""

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from edge_ai_dispatch.config.env_loader import EnvLoader
from edge_ai_dispatch.config.schemas import AppConfig
from edge_ai_dispatch.core.exceptions import ConfigError
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated by ``overlay``; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Read one YAML document that must be a mapping.

    An empty document yields ``{}``. A document of any other shape is ignored
    with a warning.

    Raises:
        ConfigError: If the file is missing, unreadable or not valid YAML
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise ConfigError(f"{path} is not UTF-8 encoded: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        logger.warning(
            f"Ignoring {path}: top level is {type(document).__name__}, expected a mapping"
        )
        return {}
    return document


class ConfigLoader:
    """Builds an ``AppConfig`` from every configuration layer.

    Later layers win: ``defaults.yaml`` < each YAML file in order < environment.
    """

    def __init__(
        self,
        config_paths: Iterable[Path | str] = (),
        env_loader: EnvLoader | None = None,
        defaults_path: Path | None = DEFAULTS_PATH,
    ):
        self.config_paths = [Path(p) for p in config_paths or ()]
        self.env_loader = env_loader or EnvLoader()
        self.defaults_path = defaults_path

    def layers(self) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(source, data)`` pairs, lowest priority first."""
        found: list[tuple[str, dict[str, Any]]] = []
        if self.defaults_path is not None and self.defaults_path.is_file():
            found.append(("defaults", read_yaml_mapping(self.defaults_path)))
        found.extend((str(p), read_yaml_mapping(p)) for p in self.config_paths)
        found.append(("environment", self.env_loader.get_config_from_env()))
        return found

    def load_config(self) -> AppConfig:
        """Merge all layers and validate the result.

        Raises:
            ConfigError: If a file cannot be read or the merged values are invalid
        """
        data: dict[str, Any] = {}
        for source, layer in self.layers():
            if layer:
                data = deep_merge(data, layer)
                logger.debug(f"Applied config layer '{source}' ({', '.join(sorted(layer))})")

        try:
            return AppConfig.from_dict(data)
        except ValidationError as e:
            logger.error(f"Configuration rejected with {e.error_count()} error(s)")
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(
    config_paths: Iterable[Path | str] = (),
    *,
    load_env_files: bool = True,
) -> AppConfig:
    """Read ``.env`` files when asked, then merge every layer."""
    env_loader = EnvLoader()
    if load_env_files:
        env_loader.load_env_files()
    return ConfigLoader(config_paths, env_loader).load_config()
