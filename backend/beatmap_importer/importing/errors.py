"""
Import error types.

PathSafetyViolation aborts and rolls back a whole import.
DestinationConflict is not a failure: it is resolved by the duplicate
workflow (open existing / reimport / ignore).
"""

from pathlib import Path


class ArchiveImportError(Exception):
    """Base exception for archive import failures."""

    pass


class PathSafetyViolation(ArchiveImportError):
    """An archive entry would be written outside the destination."""

    def __init__(self, entry_name: str, reason: str):
        self.entry_name = entry_name
        self.reason = reason
        super().__init__(f"Unsafe archive entry {entry_name!r}: {reason}")


class DestinationConflict(ArchiveImportError):
    """The destination folder already exists and overwrite was not requested."""

    def __init__(self, destination: Path):
        self.destination = Path(destination)
        super().__init__(f"Destination already exists: {destination}")


class DeletionError(ArchiveImportError):
    """Source archive could not be removed. Import status is unaffected."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot delete source {path}: {reason}")
