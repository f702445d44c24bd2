"""
Configuration file loading and merging.

Search order:
1. Explicit path (--config flag)
2. ./promboard.yaml (current directory)
3. ~/.promboard/config.yaml (user home)
4. Environment / defaults only

Environment variables (PROMBOARD_*) take precedence over file values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from promboard.config.settings import Settings
from promboard.core.errors import ConfigurationError

logger = structlog.get_logger()

CONFIG_FILENAME = "promboard.yaml"

EXAMPLE_CONFIG = """\
# promboard configuration

# Prometheus server connection
prometheus:
  url: http://localhost:9090
  # username: optional
  # password: optional
  timeout: 10

# Dashboard to load
dashboard:
  path: ./dashboards/example.json
  directory: ./dashboards

# Refresh interval in seconds
refresh_interval: 5

# Default time range for queries
time_range: 5m
"""

# Nested file sections -> flat Settings field names
_SECTION_FIELDS: dict[str, dict[str, str]] = {
    "prometheus": {
        "url": "prometheus_url",
        "username": "prometheus_username",
        "password": "prometheus_password",
        "timeout": "prometheus_timeout",
        "max_retries": "http_max_retries",
    },
    "dashboard": {
        "path": "dashboard_path",
        "directory": "dashboard_directory",
    },
}


def get_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the configuration file to use.

    Returns:
        Path to config file or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        return None

    cwd_config = Path.cwd() / CONFIG_FILENAME
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / ".promboard" / "config.yaml"
    if home_config.exists():
        return home_config

    return None


def flatten_config(data: dict[str, Any]) -> dict[str, Any]:
    """Map the nested YAML layout onto flat Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        section = _SECTION_FIELDS.get(key)
        if section is not None and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                field_name = section.get(sub_key)
                if field_name is None:
                    logger.debug("unknown_config_key", section=key, key=sub_key)
                    continue
                flat[field_name] = sub_value
        elif key in Settings.model_fields:
            flat[key] = value
        else:
            logger.debug("unknown_config_key", key=key)
    return flat


class ConfigLoader:
    """
    Loads a YAML config file and merges it over environment/default settings.
    """

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path

    def read_file(self) -> dict[str, Any]:
        """Read the config file into flat field values; {} when absent or invalid."""
        if not self.config_path or not self.config_path.exists():
            return {}
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("failed_to_load_config", path=str(self.config_path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("invalid_config_document", path=str(self.config_path))
            return {}

        logger.debug("loaded_config", path=str(self.config_path))
        return flatten_config(data)

    def load(self) -> Settings:
        """Build Settings from file values, with environment overrides on top."""
        file_values = self.read_file()
        try:
            env_settings = Settings()
            env_values = env_settings.model_dump(include=env_settings.model_fields_set)
            return Settings(**{**file_values, **env_values})
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid configuration",
                {"path": str(self.config_path), "errors": e.error_count()},
            ) from e


def load_config(path: str | Path | None = None) -> Settings:
    """
    Convenience function to load configuration.

    Args:
        path: Optional explicit config file path

    Returns:
        Settings instance
    """
    config_path = get_config_path(path)
    if path and config_path is None:
        logger.warning("config_file_not_found", path=str(path))
    return ConfigLoader(config_path).load()


def write_example_config(path: str | Path = CONFIG_FILENAME) -> bool:
    """Write the example config file unless one already exists.

    Returns:
        True if a file was written
    """
    target = Path(path)
    if target.exists():
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONFIG)
    logger.info("wrote_example_config", path=str(target))
    return True
