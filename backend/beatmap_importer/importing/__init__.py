"""
Importing — safe archive extraction into the library.

Public API:
    ArchiveImporter — validated extraction with rollback
    delete_source_archive — guarded removal of a downloaded archive
    folder_conflict, can_delete_source — downloads/library overlap checks
"""

from .errors import ArchiveImportError, DeletionError, DestinationConflict, PathSafetyViolation
from .importer import ArchiveImporter, ImportResult, delete_source_archive
from .paths import (
    build_folder_name,
    can_delete_source,
    folder_conflict,
    is_strict_descendant,
    is_within_dir,
    safe_entry_parts,
    sanitize_folder_name,
)

__all__ = [
    "ArchiveImportError",
    "DeletionError",
    "DestinationConflict",
    "PathSafetyViolation",
    "ArchiveImporter",
    "ImportResult",
    "delete_source_archive",
    "build_folder_name",
    "can_delete_source",
    "folder_conflict",
    "is_strict_descendant",
    "is_within_dir",
    "safe_entry_parts",
    "sanitize_folder_name",
]
