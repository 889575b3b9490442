"""
Persistence layer for importer state.

One JSON index holds the thumbnail cache map and the duplicate index.
Explicit load at startup, atomic save on every mutation.
"""

from .duplicates import DuplicateIndex, DuplicateKeyKind, DuplicateMatch
from .errors import PersistenceError, SaveError, ThumbnailError
from .models import DuplicateIndexEntry, IndexDocument
from .store import INDEX_FILENAME, IndexStore
from .thumbnails import ThumbnailCache

__all__ = [
    "DuplicateIndex",
    "DuplicateKeyKind",
    "DuplicateMatch",
    "DuplicateIndexEntry",
    "IndexDocument",
    "IndexStore",
    "INDEX_FILENAME",
    "ThumbnailCache",
    "PersistenceError",
    "SaveError",
    "ThumbnailError",
]
