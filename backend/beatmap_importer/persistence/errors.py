"""
Persistence-specific errors.
"""


class PersistenceError(Exception):
    """Base exception for persistence operations."""

    pass


class SaveError(PersistenceError):
    """Failed to save state to storage."""

    pass


class ThumbnailError(PersistenceError):
    """Image could not be decoded or encoded. Non-fatal to the import."""

    def __init__(self, content_hash: str, reason: str):
        self.content_hash = content_hash
        self.reason = reason
        super().__init__(f"Thumbnail failed for {content_hash[:12]}: {reason}")
