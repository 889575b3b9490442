"""
Beatmap archives — metadata extraction.

Public API:
    ArchiveReader — open an archive, hash it, merge difficulty metadata
    parse_difficulty — parse the text of one difficulty file
    BeatmapMetadata, ParsedDifficulty — metadata models
"""

from .errors import ArchiveError, MetadataParseWarning
from .models import BeatmapMetadata, ParsedDifficulty
from .parser import parse_difficulty
from .reader import (
    ARCHIVE_EXTENSION,
    ArchiveContents,
    ArchiveReader,
    compute_file_sha256,
    compute_sha256,
)

__all__ = [
    "ArchiveError",
    "MetadataParseWarning",
    "BeatmapMetadata",
    "ParsedDifficulty",
    "parse_difficulty",
    "ARCHIVE_EXTENSION",
    "ArchiveContents",
    "ArchiveReader",
    "compute_file_sha256",
    "compute_sha256",
]
