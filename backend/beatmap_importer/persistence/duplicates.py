"""
Duplicate index.

Answers "is this archive new, or already imported, and where". Two keys:
the beatmap set id (preferred, when the metadata carries one) and the sha256
of the whole archive. A successful import records both.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from .models import DuplicateIndexEntry, IndexDocument
from .store import IndexStore

logger = logging.getLogger(__name__)


class DuplicateKeyKind(str, Enum):
    SET_ID = "set_id"
    CONTENT_HASH = "content_hash"


@dataclass(frozen=True)
class DuplicateMatch:
    kind: DuplicateKeyKind
    key: str
    entry: DuplicateIndexEntry

    @property
    def destination(self) -> Path:
        return Path(self.entry.destination)


class DuplicateIndex:
    """Duplicate lookups and registrations over an IndexStore."""

    def __init__(self, store: IndexStore):
        self.store = store

    def lookup(self, set_id: Optional[int], content_hash: Optional[str]) -> Optional[DuplicateMatch]:
        """
        Find a previous import.

        The set id is checked first. The content hash is only consulted when
        there is no set id or the set id is not in the index.
        """
        if set_id is not None:
            entry = self.store.find_set(set_id)
            if entry is not None:
                return DuplicateMatch(DuplicateKeyKind.SET_ID, str(set_id), entry)

        if content_hash:
            entry = self.store.find_hash(content_hash)
            if entry is not None:
                return DuplicateMatch(DuplicateKeyKind.CONTENT_HASH, content_hash, entry)

        return None

    def record_import(
        self,
        set_id: Optional[int],
        content_hash: str,
        destination: Path,
        imported_at: Optional[datetime] = None,
    ) -> DuplicateIndexEntry:
        """
        Register a successful import under every available key.

        A reimport replaces the existing entries for the same keys, which
        refreshes their timestamp without adding new ones.
        """
        entry = DuplicateIndexEntry(
            destination=str(destination),
            imported_at=imported_at or datetime.now(timezone.utc),
        )

        def mutate(document: IndexDocument) -> None:
            if set_id is not None:
                document.beatmap_sets[set_id] = entry
            document.archive_hashes[content_hash] = entry

        self.store.update(mutate)
        logger.debug(f"Indexed {destination} (set id: {set_id}, hash: {content_hash[:12]})")
        return entry
