"""
promboard configuration.

Provides:
- Pydantic-based settings (environment variables, .env files)
- YAML config file loading merged under environment overrides
"""

from promboard.config.loader import (
    ConfigLoader,
    get_config_path,
    load_config,
    write_example_config,
)
from promboard.config.settings import Settings

__all__ = [
    "Settings",
    "ConfigLoader",
    "load_config",
    "get_config_path",
    "write_example_config",
]
