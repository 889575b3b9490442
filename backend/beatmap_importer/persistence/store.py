"""
Index store — the persisted thumbnail map and duplicate index.

Loaded once at startup and saved on every mutation. Writes are serialized:
the mutated document is written to a temp file and moved into place before
the in-memory copy is swapped, so memory never holds an entry that is not on
disk. Readers use whatever document is current without locking.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from .errors import SaveError
from .models import DuplicateIndexEntry, IndexDocument

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"


def atomic_write_text(target: Path, text: str) -> None:
    """Write text next to target, fsync, then rename over it."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class IndexStore:
    """Explicit, injectable store for the index document."""

    def __init__(self, path: Path, document: Optional[IndexDocument] = None):
        self.path = Path(path)
        self._document = document or IndexDocument()
        self._write_lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> "IndexStore":
        """Load the index from file, or start empty if missing or corrupt."""
        path = Path(path)
        if not path.is_file():
            return cls(path)

        try:
            document = IndexDocument.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            # Corrupted index - start fresh
            logger.warning(f"Ignoring unreadable index {path}: {e}")
            return cls(path)

        logger.info(
            f"Loaded index: {len(document.beatmap_sets)} set(s), "
            f"{len(document.archive_hashes)} hash(es), {len(document.thumbnails)} thumbnail(s)"
        )
        return cls(path, document)

    @property
    def document(self) -> IndexDocument:
        """Current document. Treat as read-only."""
        return self._document

    def get_thumbnail(self, content_hash: str) -> Optional[Path]:
        value = self._document.thumbnails.get(content_hash)
        return Path(value) if value else None

    def find_set(self, set_id: int) -> Optional[DuplicateIndexEntry]:
        return self._document.beatmap_sets.get(set_id)

    def find_hash(self, content_hash: str) -> Optional[DuplicateIndexEntry]:
        return self._document.archive_hashes.get(content_hash)

    def update(self, mutate: Callable[[IndexDocument], None]) -> IndexDocument:
        """
        Apply a mutation, persist it, then publish it in memory.

        Raises:
            SaveError: the document could not be written; memory is unchanged
        """
        with self._write_lock:
            candidate = self._document.model_copy(deep=True)
            mutate(candidate)
            try:
                atomic_write_text(self.path, candidate.model_dump_json(indent=2))
            except OSError as e:
                raise SaveError(f"Failed to save index {self.path}: {e}") from e
            self._document = candidate
            return candidate
