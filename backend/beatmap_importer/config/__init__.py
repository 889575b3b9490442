"""
Importer configuration (pydantic, JSON-persisted).
"""

from .errors import ConfigError
from .settings import (
    CONFIG_FILENAME,
    ImporterConfig,
    StabilitySettings,
    default_config_path,
    default_data_dir,
    enforce_path_safety,
    load_config,
    load_startup_config,
    save_config,
)

__all__ = [
    "ConfigError",
    "CONFIG_FILENAME",
    "ImporterConfig",
    "StabilitySettings",
    "default_config_path",
    "default_data_dir",
    "enforce_path_safety",
    "load_config",
    "load_startup_config",
    "save_config",
]
