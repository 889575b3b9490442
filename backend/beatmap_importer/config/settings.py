"""
Importer configuration.

Persisted as one JSON document:

{
    "downloads_dir": "/home/user/Downloads",
    "library_dir": "/games/osu/Songs",
    "auto_import": false,
    "auto_delete_source": false,
    "max_workers": 4,
    "stability": {"consecutive_checks": 3, "interval_ms": 700, "timeout_secs": 120}
}

Auto-import is always switched off at startup; the operator enables it
explicitly for each session.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..importing.paths import folder_conflict
from ..persistence.store import atomic_write_text
from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
HOME_ENV_VAR = "BEATMAP_IMPORTER_HOME"


def default_data_dir() -> Path:
    """Where config, index, thumbnails and logs live."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".beatmap-importer"


def default_downloads_dir() -> Path:
    return Path.home() / "Downloads"


class StabilitySettings(BaseModel):
    """Download stability polling parameters."""

    model_config = ConfigDict(extra="forbid")

    consecutive_checks: int = Field(default=3, ge=1)
    interval_ms: int = Field(default=700, gt=0)
    timeout_secs: int = Field(default=120, gt=0)


class ImporterConfig(BaseModel):
    """Complete importer configuration."""

    model_config = ConfigDict(extra="forbid")

    downloads_dir: Path = Field(default_factory=default_downloads_dir)
    library_dir: Path = Field(default_factory=lambda: default_downloads_dir() / "BeatmapLibrary")
    auto_import: bool = False
    auto_delete_source: bool = False
    max_workers: int = Field(default=4, ge=1)
    stability: StabilitySettings = Field(default_factory=StabilitySettings)
    data_dir: Optional[Path] = Field(
        default=None, description="State directory (defaults to ~/.beatmap-importer)"
    )

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir if self.data_dir is not None else default_data_dir()

    @property
    def cache_dir(self) -> Path:
        return self.resolved_data_dir / "cache"

    @property
    def thumbnails_dir(self) -> Path:
        return self.cache_dir / "thumbnails"

    @property
    def index_path(self) -> Path:
        return self.cache_dir / "index.json"

    @property
    def logs_dir(self) -> Path:
        return self.resolved_data_dir / "logs"

    def folder_conflict(self) -> Optional[str]:
        return folder_conflict(self.downloads_dir, self.library_dir)


def default_config_path() -> Path:
    return default_data_dir() / CONFIG_FILENAME


def load_config(path: Path) -> ImporterConfig:
    """
    Load configuration from file, or return defaults if not found.

    Raises:
        ConfigError: invalid JSON or schema
    """
    path = Path(path)
    if not path.is_file():
        return ImporterConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(str(path), str(e)) from e

    try:
        return ImporterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(path), str(e)) from e


def save_config(config: ImporterConfig, path: Path) -> None:
    """Save configuration atomically."""
    try:
        atomic_write_text(Path(path), config.model_dump_json(indent=2))
    except OSError as e:
        raise ConfigError(str(path), f"cannot write ({e})") from e


def enforce_path_safety(config: ImporterConfig) -> Tuple[ImporterConfig, Optional[str]]:
    """Disable automatic actions while downloads and library overlap."""
    warning = config.folder_conflict()
    if warning is not None:
        config = config.model_copy(update={"auto_import": False, "auto_delete_source": False})
        logger.warning(f"Automatic import and deletion disabled: {warning}")
    return config, warning


def load_startup_config(path: Path) -> Tuple[ImporterConfig, Optional[str]]:
    """
    Load configuration for a new session.

    Auto-import is reset to off (and persisted) so a restart never resumes
    unattended imports. Returns the config plus any folder-overlap warning.
    """
    config = load_config(path)
    if config.auto_import:
        config = config.model_copy(update={"auto_import": False})
        try:
            save_config(config, path)
        except ConfigError as e:
            logger.warning(f"Could not persist startup config: {e}")
    return enforce_path_safety(config)
