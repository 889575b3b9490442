"""
Filesystem scanner for the downloads folder.

Lists archives already present in a directory so a restart does not lose
in-flight downloads.
"""

from pathlib import Path
from typing import Iterable, List, Set


class FileScanner:
    """
    Top-level directory scanner with extension filtering.

    Skips hidden files, directories, and symlinks.
    """

    def __init__(
        self,
        extensions: Iterable[str] = (".osz",),
        skip_hidden: bool = True,
        follow_symlinks: bool = False,
    ):
        """
        Initialize file scanner.

        Args:
            extensions: Lowercase suffixes to accept (default: .osz)
            skip_hidden: Skip files starting with '.' (default: True)
            follow_symlinks: Follow symbolic links (default: False for safety)
        """
        self.extensions: Set[str] = {ext.lower() for ext in extensions}
        self.skip_hidden = skip_hidden
        self.follow_symlinks = follow_symlinks

    def matches(self, path: Path) -> bool:
        """Whether a path name qualifies, without touching the filesystem."""
        if self.skip_hidden and path.name.startswith("."):
            return False
        return path.suffix.lower() in self.extensions

    def scan(self, folder: Path) -> List[Path]:
        """
        Scan a folder (non-recursive) for candidate archives.

        Returns:
            Sorted list of absolute paths (not yet stability-checked)
        """
        folder = Path(folder)
        if not folder.is_dir():
            return []

        candidates = []
        try:
            for item in folder.iterdir():
                if item.is_symlink() and not self.follow_symlinks:
                    continue
                if not self.matches(item):
                    continue
                if not item.is_file():
                    continue
                candidates.append(item.absolute())
        except OSError:
            # Directory became inaccessible during scan
            return sorted(candidates)

        return sorted(candidates)
