"""
Pipeline error types and error classification.

Item-level failures are stored on the item as a short summary (for a status
line) plus the full detail (for a tooltip or log).
"""

from typing import Tuple

from ..archives.errors import ArchiveError
from ..importing.errors import PathSafetyViolation
from ..persistence.errors import PersistenceError
from ..watchfolders.errors import SourceMissingError, StabilityTimeout


class PipelineError(Exception):
    """Base exception for orchestrator failures."""

    pass


class ItemNotFoundError(PipelineError):
    """Raised when an item id is not in the queue."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class InvalidStateTransitionError(PipelineError):
    """Raised when attempting an illegal state transition."""

    def __init__(self, current_state: str, target_state: str, reason: str = ""):
        self.current_state = current_state
        self.target_state = target_state
        message = f"Invalid item state transition: {current_state} -> {target_state}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class CommandRejected(PipelineError):
    """A control command is not allowed in the current state."""

    pass


def classify_error(error: BaseException) -> Tuple[str, str]:
    """Return (short summary, full detail) for an item-level failure."""
    detail = str(error) or error.__class__.__name__
    if error.__cause__ is not None and str(error.__cause__) not in detail:
        detail = f"{detail}: {error.__cause__}"

    if isinstance(error, StabilityTimeout):
        summary = "Download did not finish in time"
    elif isinstance(error, SourceMissingError):
        summary = "Source file not found"
    elif isinstance(error, ArchiveError):
        summary = "Could not read the archive"
    elif isinstance(error, PathSafetyViolation):
        summary = "Archive contains unsafe paths"
    elif isinstance(error, PersistenceError):
        summary = "Could not save the import index"
    elif isinstance(error, OSError):
        summary = "Could not write to the library folder"
    else:
        summary = "Import failed"
    return summary, detail
