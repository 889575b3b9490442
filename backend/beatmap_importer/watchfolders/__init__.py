"""
Watch folders — download detection.

Public API:
    FolderWatcher — watchdog-backed discovery of new archives
    FileScanner — top-level scan with extension filtering
    FileStabilityChecker — size/mtime polling for download completion
    SystemClock — real clock used by polling loops
"""

from .clock import Clock, SystemClock
from .errors import (
    FileStabilityError,
    SourceMissingError,
    StabilityTimeout,
    WatchError,
    WatchFolderError,
)
from .models import FileReading, FileStabilityCheck, StabilityResult, StabilityState
from .scanner import FileScanner
from .stability import FileStabilityChecker
from .watcher import FolderWatcher

__all__ = [
    # Errors
    "WatchFolderError",
    "WatchError",
    "FileStabilityError",
    "StabilityTimeout",
    "SourceMissingError",
    # Models
    "FileReading",
    "FileStabilityCheck",
    "StabilityResult",
    "StabilityState",
    # Core
    "Clock",
    "SystemClock",
    "FileScanner",
    "FileStabilityChecker",
    "FolderWatcher",
]
