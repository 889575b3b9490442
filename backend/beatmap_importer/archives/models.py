"""
Beatmap metadata models.

ParsedDifficulty is what one difficulty file yields.
BeatmapMetadata is the merged view over every difficulty in an archive.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ParsedDifficulty(BaseModel):
    """Fields recovered from a single difficulty file."""

    model_config = ConfigDict(extra="forbid")

    title: str = ""
    artist: str = ""
    creator: str = ""
    version: str = ""
    beatmap_set_id: Optional[int] = None
    beatmap_id: Optional[int] = None
    background_file: Optional[str] = None
    audio_file: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        """A difficulty without title and artist carries no useful identity."""
        return bool(self.title or self.artist)


class BeatmapMetadata(BaseModel):
    """
    Aggregate metadata for one beatmap set.

    Merge rule: the first non-empty value of every scalar field wins,
    difficulty names accumulate without duplicates in discovery order.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = ""
    artist: str = ""
    creator: str = ""
    beatmap_set_id: Optional[int] = None
    difficulties: List[str] = Field(default_factory=list)
    beatmap_ids: List[int] = Field(default_factory=list)
    background_file: Optional[str] = None
    audio_file: Optional[str] = None

    @property
    def display_title(self) -> str:
        if self.artist and self.title:
            return f"{self.artist} - {self.title}"
        return self.title or self.artist

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.artist or self.difficulties)

    def merge(self, parsed: ParsedDifficulty) -> None:
        """Fold one parsed difficulty into this aggregate."""
        if not self.title and parsed.title:
            self.title = parsed.title
        if not self.artist and parsed.artist:
            self.artist = parsed.artist
        if not self.creator and parsed.creator:
            self.creator = parsed.creator
        if self.beatmap_set_id is None and parsed.beatmap_set_id is not None:
            self.beatmap_set_id = parsed.beatmap_set_id
        if not self.background_file and parsed.background_file:
            self.background_file = parsed.background_file
        if not self.audio_file and parsed.audio_file:
            self.audio_file = parsed.audio_file
        if parsed.version and parsed.version not in self.difficulties:
            self.difficulties.append(parsed.version)
        if parsed.beatmap_id is not None and parsed.beatmap_id not in self.beatmap_ids:
            self.beatmap_ids.append(parsed.beatmap_id)
