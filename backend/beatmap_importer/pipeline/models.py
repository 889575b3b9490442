"""
Pipeline item models.

One DiscoveredItem per source archive path. Status payloads live in plain
fields next to the status:

    WAITING          -> stability_checks / stability_required
    DUPLICATE        -> destination (existing import)
    FAILED           -> error_summary / error_detail

Snapshots handed to the control layer are deep copies; the pipeline is the
only writer of the live objects.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..archives.models import BeatmapMetadata


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportStatus(str, Enum):
    """
    Item-level status.

    Items move forward through these states. FAILED is reachable from any
    non-terminal state. COMPLETED, DUPLICATE and FAILED are terminal.
    """

    DETECTED = "detected"  # Discovered, not yet polled
    WAITING = "waiting"  # Polling until the download stops changing
    READING_METADATA = "reading_metadata"  # Reading archive; parks here until import
    IMPORTING = "importing"  # Extracting into the library
    COMPLETED = "completed"  # Extracted and indexed
    DUPLICATE = "duplicate"  # Already imported; destination points at it
    FAILED = "failed"  # Pass failed; see error fields


class DiscoveredItem(BaseModel):
    """A source archive and everything learned about it so far."""

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_path: str  # Canonical absolute path; the real identity

    # Timestamps
    detected_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # State
    status: ImportStatus = ImportStatus.DETECTED
    message: Optional[str] = None
    pass_number: int = 1
    archived: bool = False  # Hidden from the queue after "ignore"

    # Auto-import policy in effect when this pass was discovered
    auto_import: bool = False

    # Stability progress
    stability_checks: int = 0
    stability_required: int = 0
    stability_confirmed: bool = False

    # Metadata stage
    content_hash: Optional[str] = None
    metadata: Optional[BeatmapMetadata] = None
    thumbnail_path: Optional[str] = None
    duplicate_checked: bool = False
    duplicate_key: Optional[str] = None  # "set_id" or "content_hash" on a hit
    ready_for_import: bool = False

    # Outcome
    destination: Optional[str] = None
    error_summary: Optional[str] = None
    error_detail: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def source_name(self) -> str:
        return Path(self.source_path).name

    def snapshot(self) -> "DiscoveredItem":
        return self.model_copy(deep=True)


# Deep copy handed to the control layer and to subscribers
ItemSnapshot = DiscoveredItem


class PipelineStatus(BaseModel):
    """Session-level state shown next to the queue."""

    model_config = ConfigDict(extra="forbid")

    running: bool
    watching: bool
    watch_error: Optional[str] = None
    downloads_dir: str
    library_dir: str
    auto_import: bool
    auto_delete_source: bool
    folder_conflict: Optional[str] = None
    bulk_import_running: bool = False
    items_total: int = 0
    items_active: int = 0
