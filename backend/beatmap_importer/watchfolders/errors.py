"""
Watch folder error hierarchy.

WatchError is fatal to automatic detection only. Manual enqueue keeps
working. StabilityTimeout is item-level and retryable by re-adding the file.
"""


class WatchFolderError(Exception):
    """Base exception for watch folder failures."""

    pass


class WatchError(WatchFolderError):
    """Filesystem notifications could not be established for the folder."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot watch {path}: {reason}")


class FileStabilityError(WatchFolderError):
    """File is not stable for processing (still being written/copied)."""

    pass


class StabilityTimeout(FileStabilityError):
    """File kept changing until the stability timeout elapsed."""

    def __init__(self, path: str, timeout_secs: float):
        self.path = path
        self.timeout_secs = timeout_secs
        super().__init__(
            f"File did not stabilize within {timeout_secs:g}s: {path}"
        )


class SourceMissingError(FileStabilityError):
    """Source file does not exist when polling starts."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Source file not found: {path}")
