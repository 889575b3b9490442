"""
Archive importer — safe extraction into the library folder.

Every entry name is validated before the first byte is written. Entries are
extracted into a hidden staging folder inside the library root; each output
path is resolved and must be a strict descendant of the staging root. Only a
fully extracted tree is renamed into place. Any failure removes the staging
folder, so a failed import never leaves a destination behind.
"""

import logging
import os
import shutil
import tempfile
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..archives.errors import ArchiveError
from ..archives.models import BeatmapMetadata
from .errors import DeletionError, DestinationConflict, PathSafetyViolation
from .paths import build_folder_name, can_delete_source, folder_conflict, is_strict_descendant, safe_entry_parts

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Result of a successful extraction."""

    destination: Path
    files_written: int
    overwritten: bool = False


class ArchiveImporter:
    """Extracts validated archives into one library root."""

    def __init__(self, library_root: Path):
        self.library_root = Path(library_root)

    def destination_for(self, metadata: BeatmapMetadata, archive_path: Path) -> Path:
        return self.library_root / build_folder_name(metadata, archive_path)

    def import_archive(
        self,
        archive_path: Path,
        metadata: BeatmapMetadata,
        destination: Optional[Path] = None,
        overwrite: bool = False,
    ) -> ImportResult:
        """
        Extract an archive.

        Args:
            archive_path: Stable source archive
            metadata: Merged metadata, used to name the destination
            destination: Explicit target (reimport); must be inside the library
            overwrite: Replace an existing destination

        Raises:
            DestinationConflict: destination exists and overwrite is False
            PathSafetyViolation: an entry (or the destination) escapes the library
            ArchiveError: archive cannot be read
            OSError: filesystem failure while writing
        """
        archive_path = Path(archive_path)
        dest = Path(destination) if destination is not None else self.destination_for(metadata, archive_path)

        if not is_strict_descendant(self.library_root, dest):
            raise PathSafetyViolation(str(dest), "destination is outside the library folder")
        if dest.exists() and not overwrite:
            raise DestinationConflict(dest)

        try:
            archive = zipfile.ZipFile(archive_path)
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise ArchiveError(str(archive_path), f"not a valid archive ({e})") from e
        except OSError as e:
            raise ArchiveError(str(archive_path), str(e)) from e

        with archive:
            plan = self._plan(archive)

            self.library_root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{dest.name[:40]}.", suffix=".partial", dir=self.library_root))
            try:
                written = self._extract(archive, plan, staging)
                overwritten = self._publish(staging, dest, overwrite)
            except zipfile.BadZipFile as e:
                shutil.rmtree(staging, ignore_errors=True)
                raise ArchiveError(str(archive_path), f"corrupt entry ({e})") from e
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise

        logger.info(f"Extracted {written} file(s) from {archive_path.name} to {dest}")
        return ImportResult(destination=dest, files_written=written, overwritten=overwritten)

    def _plan(self, archive: zipfile.ZipFile) -> List[Tuple[zipfile.ZipInfo, List[str]]]:
        """Validate every entry name up front. Nothing is written on rejection."""
        return [(info, safe_entry_parts(info.filename)) for info in archive.infolist()]

    def _extract(
        self,
        archive: zipfile.ZipFile,
        plan: List[Tuple[zipfile.ZipInfo, List[str]]],
        staging: Path,
    ) -> int:
        root = staging.resolve()
        written = 0
        for info, parts in plan:
            target = root.joinpath(*parts).resolve()
            # Resolved path check catches anything the name check cannot see
            if not is_strict_descendant(root, target):
                raise PathSafetyViolation(info.filename, "resolves outside the destination")

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            written += 1
        return written

    def _publish(self, staging: Path, dest: Path, overwrite: bool) -> bool:
        """Move the staged tree into place. Returns True if a tree was replaced."""
        if not dest.exists():
            try:
                os.replace(staging, dest)
            except OSError as e:
                # Another import published the same folder first
                if dest.exists():
                    raise DestinationConflict(dest) from e
                raise
            return False

        if not overwrite:
            raise DestinationConflict(dest)

        backup = dest.with_name(f".{dest.name[:40]}.old-{uuid.uuid4().hex[:8]}")
        os.replace(dest, backup)
        try:
            os.replace(staging, dest)
        except OSError:
            os.replace(backup, dest)
            raise
        shutil.rmtree(backup, ignore_errors=True)
        return True


def delete_source_archive(source: Path, downloads_root: Path, library_root: Path) -> None:
    """
    Remove a source archive from the downloads folder.

    Raises:
        DeletionError: deletion not permitted, file missing, or removal failed
    """
    source = Path(source)
    conflict = folder_conflict(downloads_root, library_root)
    if conflict is not None:
        raise DeletionError(str(source), conflict)
    if not can_delete_source(downloads_root, library_root, source):
        raise DeletionError(str(source), "source is outside the downloads folder")
    if not source.exists():
        raise DeletionError(str(source), "source file not found")

    try:
        source.unlink()
    except OSError as e:
        raise DeletionError(str(source), str(e)) from e
    logger.info(f"Deleted source archive {source}")
