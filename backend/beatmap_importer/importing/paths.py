"""
Path helpers for the importer.

Naming: destination folder names are built from metadata and sanitized for
every common filesystem.

Safety: archive entry names are validated before anything is written, and the
downloads/library folder pair is checked for overlap before any source file
is deleted.
"""

import os
import re
from pathlib import Path
from typing import List, Optional

from ..archives.models import BeatmapMetadata
from .errors import PathSafetyViolation

MAX_FOLDER_NAME_LENGTH = 100
FALLBACK_FOLDER_NAME = "beatmap"

_ILLEGAL_CHARS = re.compile(r'[:*?"<>|\\/\x00-\x1f]')
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def sanitize_component(name: str) -> str:
    """Replace characters that are illegal in a path component."""
    cleaned = _ILLEGAL_CHARS.sub("_", name)
    # Windows drops trailing dots and spaces
    return cleaned.rstrip(" .")


def sanitize_folder_name(name: str, max_length: int = MAX_FOLDER_NAME_LENGTH) -> str:
    cleaned = sanitize_component(name)[:max_length]
    return cleaned.strip().strip(".").strip()


def build_folder_name(metadata: BeatmapMetadata, archive_path: Optional[Path] = None) -> str:
    """
    Destination folder name: "Artist - Title (Creator) [SetID]".

    Falls back to the archive file name when metadata is empty.
    """
    base = " - ".join(part for part in (metadata.artist, metadata.title) if part)
    if base and metadata.creator:
        base = f"{base} ({metadata.creator})"
    if base and metadata.beatmap_set_id is not None:
        base = f"{base} [{metadata.beatmap_set_id}]"

    name = sanitize_folder_name(base)
    if not name and archive_path is not None:
        name = sanitize_folder_name(Path(archive_path).stem)
    return name or FALLBACK_FOLDER_NAME


def safe_entry_parts(entry_name: str) -> List[str]:
    """
    Validate an archive entry name and return its sanitized path components.

    Raises:
        PathSafetyViolation: absolute path, drive prefix, parent traversal,
            NUL byte, or no usable component
    """
    if not entry_name or "\x00" in entry_name:
        raise PathSafetyViolation(entry_name, "empty or invalid name")

    normalized = entry_name.replace("\\", "/")
    if normalized.startswith("/"):
        raise PathSafetyViolation(entry_name, "absolute path")
    if _DRIVE_PREFIX.match(normalized):
        raise PathSafetyViolation(entry_name, "drive-qualified path")

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathSafetyViolation(entry_name, "parent directory traversal")

    cleaned = [sanitize_component(part) for part in parts]
    if not cleaned or any(not part or part == ".." for part in cleaned):
        raise PathSafetyViolation(entry_name, "empty path component")
    return cleaned


def normalize_path(path: Path) -> str:
    """Absolute, lexically normalized path without touching the filesystem."""
    return os.path.normcase(os.path.normpath(os.path.abspath(str(path))))


def is_within_dir(base: Path, candidate: Path) -> bool:
    """True if candidate is base or lies below it (lexical comparison)."""
    base_norm = normalize_path(base)
    cand_norm = normalize_path(candidate)
    if cand_norm == base_norm:
        return True
    return cand_norm.startswith(base_norm.rstrip(os.sep) + os.sep)


def is_strict_descendant(base: Path, candidate: Path) -> bool:
    """True if candidate lies below base and is not base itself."""
    return is_within_dir(base, candidate) and normalize_path(base) != normalize_path(candidate)


def folder_conflict(downloads: Path, library: Path) -> Optional[str]:
    """
    Describe an unsafe overlap between the downloads and library folders.

    Returns None when the two folders are independent.
    """
    if normalize_path(downloads) == normalize_path(library):
        return "Downloads and library point to the same folder"
    if is_within_dir(downloads, library):
        return "Library folder is inside the downloads folder"
    if is_within_dir(library, downloads):
        return "Downloads folder is inside the library folder; cleaning it would lose beatmaps"
    return None


def can_delete_source(downloads: Path, library: Path, source: Path) -> bool:
    """Deleting is allowed only inside downloads, and only without overlap."""
    if folder_conflict(downloads, library) is not None:
        return False
    return is_strict_descendant(downloads, source)
