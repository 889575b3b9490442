"""
Folder watcher.

Subscribes to create/rename notifications on one directory (non-recursive)
through watchdog and forwards each qualifying archive path to a callback.
The callback runs on the notification thread and must only hand the path
off (e.g. put it on a queue); it never processes the file itself.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatchError
from .scanner import FileScanner

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class _ArchiveEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: "FolderWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.handle_path(Path(str(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.handle_path(Path(str(event.dest_path)))


class FolderWatcher:
    """
    Emits discovery events for archives appearing in one folder.

    Duplicate or coalesced notifications for the same canonical path inside
    the debounce window are dropped. On start, one explicit scan emits every
    archive already present.
    """

    def __init__(
        self,
        folder: Path,
        on_discovered: Callable[[Path], None],
        scanner: Optional[FileScanner] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
        observer_factory: Callable[[], object] = Observer,
    ):
        self.folder = Path(folder)
        self.on_discovered = on_discovered
        self.scanner = scanner or FileScanner()
        self.debounce_seconds = debounce_seconds
        self._monotonic = monotonic
        self._observer_factory = observer_factory
        self._observer = None
        self._recent: Dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def handle_path(self, path: Path) -> bool:
        """
        Filter and de-duplicate one notified path.

        Returns:
            True if the path was emitted
        """
        if not self.scanner.matches(path):
            return False

        key = str(Path(path).resolve())
        now = self._monotonic()
        with self._lock:
            last = self._recent.get(key)
            if last is not None and now - last < self.debounce_seconds:
                logger.debug(f"Dropping duplicate notification for {key}")
                return False
            self._recent[key] = now
            # Forget entries older than the window
            expired = [k for k, t in self._recent.items() if now - t >= self.debounce_seconds]
            for k in expired:
                if k != key:
                    del self._recent[k]

        self.on_discovered(Path(key))
        return True

    def scan_existing(self) -> int:
        """Emit every archive already present. Returns the number emitted."""
        emitted = 0
        for path in self.scanner.scan(self.folder):
            if self.handle_path(path):
                emitted += 1
        if emitted:
            logger.info(f"Startup scan found {emitted} archive(s) in {self.folder}")
        return emitted

    def start(self) -> None:
        """
        Scan the folder, then start receiving notifications.

        Raises:
            WatchError: folder missing, not a directory, or observer failure
        """
        if self._observer is not None:
            return
        if not self.folder.exists():
            raise WatchError(str(self.folder), "path does not exist")
        if not self.folder.is_dir():
            raise WatchError(str(self.folder), "path is not a directory")

        self.scan_existing()

        observer = self._observer_factory()
        try:
            observer.schedule(_ArchiveEventHandler(self), str(self.folder), recursive=False)
            observer.start()
        except OSError as e:
            raise WatchError(str(self.folder), str(e)) from e

        self._observer = observer
        logger.info(f"Watching {self.folder} for new archives")

    def stop(self, timeout: float = 5.0) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout)
        logger.info(f"Stopped watching {self.folder}")
