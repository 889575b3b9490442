"""
Archive error types.

ArchiveError is terminal for the current processing pass of an item.
MetadataParseWarning only degrades metadata quality; it never fails an import.
"""


class ArchiveError(Exception):
    """Archive is unreadable or not a valid zip container."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read archive {path}: {reason}")


class MetadataParseWarning(Exception):
    """A difficulty file inside the archive could not be parsed usefully."""

    def __init__(self, entry_name: str, reason: str):
        self.entry_name = entry_name
        self.reason = reason
        super().__init__(f"{entry_name}: {reason}")
