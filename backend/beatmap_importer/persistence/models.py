"""
Persisted index document.

One JSON file holds both the thumbnail cache map and the duplicate index:

{
    "version": 1,
    "thumbnails": {"<sha256>": "<png path>"},
    "beatmap_sets": {"<set id>": {"destination": "...", "imported_at": "..."}},
    "archive_hashes": {"<sha256>": {"destination": "...", "imported_at": "..."}}
}
"""

from datetime import datetime, timezone
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

INDEX_VERSION = 1


class DuplicateIndexEntry(BaseModel):
    """Where an archive was imported to, and when."""

    model_config = ConfigDict(extra="forbid")

    destination: str
    imported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IndexDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = INDEX_VERSION
    thumbnails: Dict[str, str] = Field(default_factory=dict)
    beatmap_sets: Dict[int, DuplicateIndexEntry] = Field(default_factory=dict)
    archive_hashes: Dict[str, DuplicateIndexEntry] = Field(default_factory=dict)
