"""
Archive reader.

Opens a beatmap archive once, hashes its bytes, parses every difficulty file
and merges the results into one BeatmapMetadata. The background image named
by the metadata is pulled out as raw bytes for thumbnail generation.
"""

import hashlib
import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import ArchiveError, MetadataParseWarning
from .models import BeatmapMetadata, ParsedDifficulty
from .parser import parse_difficulty

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".osz"
DIFFICULTY_EXTENSION = ".osu"

# Per-entry failures: damaged headers, bad CRC, corrupt deflate data, truncation
ENTRY_READ_ERRORS = (zipfile.BadZipFile, OSError, RuntimeError, EOFError, zlib.error)


def compute_sha256(data: bytes) -> str:
    """Content hash of archive bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_file_sha256(file_path: Path) -> str:
    """Compute SHA256 hash of file contents."""
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


@dataclass
class ArchiveContents:
    """Everything the pipeline needs from one archive."""

    path: Path
    content_hash: str
    metadata: BeatmapMetadata
    background_bytes: Optional[bytes] = None
    warnings: List[str] = field(default_factory=list)


def _normalize_entry(name: str) -> str:
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def find_entry(names: List[str], reference: str) -> Optional[str]:
    """
    Locate the archive entry a difficulty file refers to.

    Exact path first, then trailing path component, then case-insensitive.
    """
    wanted = _normalize_entry(reference)
    normalized = {name: _normalize_entry(name) for name in names}

    for name, norm in normalized.items():
        if norm == wanted:
            return name
    for name, norm in normalized.items():
        if norm.endswith("/" + wanted):
            return name
    lowered = wanted.lower()
    for name, norm in normalized.items():
        if norm.lower() == lowered or norm.lower().endswith("/" + lowered):
            return name
    return None


class ArchiveReader:
    """Reads metadata and artwork out of beatmap archives."""

    def read(self, archive_path: Path) -> ArchiveContents:
        """
        Read an archive from disk.

        Raises:
            ArchiveError: file unreadable or not a zip container
        """
        try:
            data = Path(archive_path).read_bytes()
        except OSError as e:
            raise ArchiveError(str(archive_path), str(e)) from e
        return self.read_bytes(Path(archive_path), data)

    def read_bytes(self, archive_path: Path, data: bytes) -> ArchiveContents:
        content_hash = compute_sha256(data)
        warnings: List[str] = []

        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
            raise ArchiveError(str(archive_path), f"not a valid archive ({e})") from e

        with archive:
            names = [info.filename for info in archive.infolist() if not info.is_dir()]
            parsed: List[ParsedDifficulty] = []

            for name in names:
                if not name.lower().endswith(DIFFICULTY_EXTENSION):
                    continue
                try:
                    parsed.append(self._parse_entry(archive, name))
                except MetadataParseWarning as warning:
                    logger.warning(f"{archive_path.name}: {warning}")
                    warnings.append(str(warning))

            metadata = BeatmapMetadata()
            for difficulty in parsed:
                metadata.merge(difficulty)

            if not parsed:
                warnings.append("No parseable difficulty files found")

            background = None
            if metadata.background_file:
                background = self._read_background(archive, names, metadata.background_file)
                if background is None:
                    warnings.append(f"Background not found in archive: {metadata.background_file}")

        return ArchiveContents(
            path=archive_path,
            content_hash=content_hash,
            metadata=metadata,
            background_bytes=background,
            warnings=warnings,
        )

    def _parse_entry(self, archive: zipfile.ZipFile, name: str) -> ParsedDifficulty:
        try:
            raw = archive.read(name)
        except ENTRY_READ_ERRORS as e:
            raise MetadataParseWarning(name, f"unreadable entry ({e})") from e

        parsed = parse_difficulty(raw.decode("utf-8-sig", errors="replace"))
        if not parsed.is_usable:
            raise MetadataParseWarning(name, "missing title and artist")
        return parsed

    def _read_background(
        self, archive: zipfile.ZipFile, names: List[str], reference: str
    ) -> Optional[bytes]:
        entry = find_entry(names, reference)
        if entry is None:
            return None
        try:
            return archive.read(entry)
        except ENTRY_READ_ERRORS as e:
            logger.warning(f"Failed to read background {entry}: {e}")
            return None
