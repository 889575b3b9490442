"""
Ingestion pipeline — orchestration for archive imports.

Coordinates:
1. Discovery (FolderWatcher events and manual enqueue) through one intake queue
2. Download stability (FileStabilityChecker)
3. Metadata, artwork and content hash (ArchiveReader, ThumbnailCache)
4. Duplicate resolution (DuplicateIndex)
5. Extraction into the library (ArchiveImporter)
6. Optional source cleanup

Threading model:
- watchdog thread only puts paths on the intake queue
- one dispatcher thread turns paths into items and submits passes
- a bounded ThreadPoolExecutor runs the passes
- ItemGuards keeps one pass per source path; a refused pass is restarted
  for the newest item when the holder releases
- every write is bound to the item its pass started with, so a pass that
  outlives its item (ignored, then rediscovered) cannot touch the new one

Auto-import is decided per item when it is discovered. Without it, a pass
parks at READING_METADATA with ready_for_import set until an explicit
"import now".
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from ..archives.reader import ArchiveReader
from ..config.settings import ImporterConfig
from ..importing.errors import DeletionError, DestinationConflict
from ..importing.importer import ArchiveImporter, delete_source_archive
from ..persistence.duplicates import DuplicateIndex
from ..persistence.errors import PersistenceError
from ..persistence.store import IndexStore
from ..persistence.thumbnails import ThumbnailCache
from ..watchfolders.clock import Clock
from ..watchfolders.errors import SourceMissingError, StabilityTimeout, WatchError
from ..watchfolders.models import StabilityState
from ..watchfolders.stability import FileStabilityChecker
from ..watchfolders.watcher import FolderWatcher
from .errors import CommandRejected, ItemNotFoundError, classify_error
from .guards import ItemGuards
from .models import DiscoveredItem, ImportStatus, ItemSnapshot, PipelineStatus
from .state import TERMINAL_STATES, is_terminal, validate_import_allowed, validate_transition

logger = logging.getLogger(__name__)

DELETABLE_STATES = frozenset({ImportStatus.COMPLETED, ImportStatus.DUPLICATE})


def canonical_key(path: Path) -> str:
    return str(Path(path).resolve())


class IngestionPipeline:
    """
    Owns every DiscoveredItem and sequences the per-item pass.

    All commands are safe to call from any thread. Snapshots returned to
    callers are copies.
    """

    def __init__(
        self,
        config: ImporterConfig,
        store: Optional[IndexStore] = None,
        clock: Optional[Clock] = None,
        reader: Optional[ArchiveReader] = None,
        watcher_factory: Callable[..., FolderWatcher] = FolderWatcher,
    ):
        self.config = config
        self.store = store if store is not None else IndexStore.load(config.index_path)
        self.duplicates = DuplicateIndex(self.store)
        self.thumbnails = ThumbnailCache(self.store, config.thumbnails_dir)
        self.reader = reader or ArchiveReader()
        self.importer = ArchiveImporter(config.library_dir)
        self.stability = FileStabilityChecker.from_settings(config.stability, clock=clock)
        self.guards = ItemGuards()

        self.watcher: Optional[FolderWatcher] = None
        self.watch_error: Optional[str] = None
        self._watcher_factory = watcher_factory

        self._auto_import = config.auto_import
        self._lock = threading.RLock()
        self._items: Dict[str, DiscoveredItem] = {}
        self._cancel: Dict[str, threading.Event] = {}
        # Reimport passes: key -> destination to overwrite (None = fresh target)
        self._reimports: Dict[str, Optional[Path]] = {}
        self._subscribers: List[queue.Queue] = []

        self._intake: "queue.Queue[Optional[Path]]" = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._dispatcher: Optional[threading.Thread] = None
        self._pending: Set[Future] = set()
        self._bulk_running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._executor is not None

    @property
    def auto_import(self) -> bool:
        return self._auto_import

    def start(self, watch: bool = True) -> None:
        """
        Start the worker pool and the intake dispatcher, then the watcher.

        A watcher failure is logged and recorded in watch_error; manual
        enqueue keeps working.
        """
        if self._executor is not None:
            return

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="ingest"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="ingest-intake", daemon=True
        )
        self._dispatcher.start()
        logger.info(
            f"Pipeline started (downloads: {self.config.downloads_dir}, "
            f"library: {self.config.library_dir}, workers: {self.config.max_workers})"
        )

        if watch:
            self._start_watcher()

    def _start_watcher(self) -> None:
        watcher = self._watcher_factory(self.config.downloads_dir, self.submit_path)
        try:
            watcher.start()
        except WatchError as e:
            self.watch_error = str(e)
            logger.error(f"Automatic detection disabled: {e}")
            return
        self.watcher = watcher
        self.watch_error = None

    def stop(self) -> None:
        """Stop watching, cancel polling, and wait for running passes."""
        if self._executor is None:
            return

        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

        self._intake.put(None)
        if self._dispatcher is not None:
            self._dispatcher.join()
            self._dispatcher = None

        with self._lock:
            for event in self._cancel.values():
                event.set()

        executor, self._executor = self._executor, None
        executor.shutdown(wait=True)
        logger.info("Pipeline stopped")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the intake queue is drained and no pass is running.

        Returns:
            False if the timeout elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = [f for f in self._pending if not f.done()]
            if not pending and self._intake.unfinished_tasks == 0:
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            if pending:
                wait(pending, timeout=0.05)
            else:
                time.sleep(0.01)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit_path(self, path: Path) -> None:
        """Watcher callback. Only hands the path to the dispatcher."""
        self._intake.put(Path(path))

    def _dispatch_loop(self) -> None:
        while True:
            path = self._intake.get()
            try:
                if path is None:
                    return
                self._discover(path)
            except Exception as e:
                logger.error(f"Failed to queue {path}: {e}")
            finally:
                self._intake.task_done()

    def enqueue(self, path: Path) -> ItemSnapshot:
        """
        Add an archive by hand. Works with or without a running watcher.

        Raises:
            CommandRejected: file missing or pipeline not started
        """
        path = Path(path)
        if not path.is_file():
            raise CommandRejected(f"File not found: {path}")
        if self._executor is None:
            raise CommandRejected("Pipeline is not running")
        return self._discover(path)

    def _discover(self, path: Path) -> ItemSnapshot:
        key = canonical_key(path)
        with self._lock:
            existing = self._items.get(key)
            if existing is not None and not existing.archived and not is_terminal(existing.status):
                logger.debug(f"Already processing {key}")
                return existing.snapshot()

            item = DiscoveredItem(source_path=key, auto_import=self._auto_import)
            if existing is not None:
                # Re-detected after a finished or ignored pass: same row, new pass
                item.id = existing.id
                item.pass_number = existing.pass_number + 1
            self._items[key] = item
            self._cancel[key] = threading.Event()
            snapshot = item.snapshot()

        logger.info(f"Detected {item.source_name} (auto-import: {item.auto_import})")
        self._publish(snapshot)
        self._submit(self._process_item, item)
        return snapshot

    def _submit(self, fn: Callable[..., None], *args) -> None:
        executor = self._executor
        if executor is None:
            raise CommandRejected("Pipeline is not running")
        future = executor.submit(fn, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget_future)

    def _forget_future(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    # ------------------------------------------------------------------
    # Per-item pass
    # ------------------------------------------------------------------

    def _process_item(self, item: DiscoveredItem) -> None:
        key = item.source_path
        if not self.guards.try_acquire(key):
            logger.debug(f"Pass already running for {key}; deferring {item.source_name}")
            return
        try:
            with self._lock:
                startable = (
                    self._items.get(key) is item
                    and not item.archived
                    and item.status == ImportStatus.DETECTED
                )
            if not startable:
                logger.debug(f"Skipping pass for {item.source_name}; item was replaced or already started")
                return
            self._run_pass(item)
        except Exception as e:
            self._fail(item, e)
        finally:
            self._release(key)

    def _release(self, key: str) -> None:
        """Release the guard and start the newest item if its pass was refused meanwhile."""
        if not self.guards.release(key):
            return
        with self._lock:
            newest = self._items.get(key)
            waiting = (
                newest is not None
                and not newest.archived
                and newest.status == ImportStatus.DETECTED
            )
        if not waiting:
            return
        try:
            self._submit(self._process_item, newest)
        except CommandRejected:
            logger.warning(f"Pipeline stopped before {newest.source_name} could start")

    def _run_pass(self, item: DiscoveredItem) -> None:
        key = item.source_path
        with self._lock:
            cancel = self._cancel[key]
            reimport = key in self._reimports
            overwrite_target = self._reimports.pop(key, None)
        source = Path(item.source_path)

        started = self._transition(
            item,
            ImportStatus.WAITING,
            stability_checks=0,
            stability_required=self.stability.consecutive_checks,
            message="Waiting for download to finish",
        )
        if not started:
            return
        result = self.stability.wait_until_stable(
            source,
            cancel=cancel,
            on_progress=lambda count, required: self._update(item, stability_checks=count),
        )
        if result.state == StabilityState.CANCELLED:
            logger.info(f"Stopped waiting for {source.name}")
            return
        if result.state == StabilityState.MISSING:
            raise SourceMissingError(str(source))
        if result.state == StabilityState.TIMED_OUT:
            raise StabilityTimeout(str(source), self.stability.timeout_secs)

        self._update(item, stability_confirmed=True)
        self._transition(item, ImportStatus.READING_METADATA, message="Reading metadata")

        contents = self.reader.read(source)
        warnings = list(contents.warnings)
        thumbnail_path = None
        if contents.background_bytes:
            try:
                thumbnail_path = str(
                    self.thumbnails.get_or_create(contents.content_hash, contents.background_bytes)
                )
            except PersistenceError as e:
                logger.warning(f"{source.name}: {e}")
                warnings.append(str(e))

        self._update(
            item,
            content_hash=contents.content_hash,
            metadata=contents.metadata,
            thumbnail_path=thumbnail_path,
            warnings=item.warnings + warnings,
        )
        if cancel.is_set():
            return

        match = self.duplicates.lookup(contents.metadata.beatmap_set_id, contents.content_hash)
        self._update(item, duplicate_checked=True)

        if reimport and overwrite_target is not None:
            self._import_locked(item, destination=overwrite_target, overwrite=True)
            return

        if match is not None:
            self._transition(
                item,
                ImportStatus.DUPLICATE,
                destination=str(match.destination),
                duplicate_key=match.kind.value,
                message=f"Already imported (matched by {match.kind.value.replace('_', ' ')})",
            )
            return

        self._update(item, ready_for_import=True, message="Ready to import")

        if not (item.auto_import or reimport):
            return

        conflict = self.config.folder_conflict()
        if conflict is not None:
            logger.warning(f"Not importing {source.name} automatically: {conflict}")
            self._update(item, message=f"Waiting: {conflict}")
            return

        self._import_locked(item)

    def _import_locked(
        self, item: DiscoveredItem, destination: Optional[Path] = None, overwrite: bool = False
    ) -> None:
        """Extract one item. Caller holds the item guard."""
        key = item.source_path
        with self._lock:
            if self._items.get(key) is not item:
                logger.info(f"Not importing {item.source_name}; the item was replaced")
                return
            validate_import_allowed(item)
            metadata = item.metadata
            content_hash = item.content_hash
            cancel = self._cancel[key]
        source = Path(item.source_path)

        self._transition(item, ImportStatus.IMPORTING, ready_for_import=False, message="Importing")

        try:
            result = self.importer.import_archive(source, metadata, destination, overwrite)
        except DestinationConflict as e:
            self._transition(
                item,
                ImportStatus.DUPLICATE,
                destination=str(e.destination),
                message="Destination folder already exists",
            )
            return

        warnings: List[str] = []
        try:
            self.duplicates.record_import(metadata.beatmap_set_id, content_hash, result.destination)
        except PersistenceError as e:
            logger.error(f"Imported {source.name} but could not update the index: {e}")
            warnings.append(f"Index not updated: {e}")

        with self._lock:
            all_warnings = item.warnings + warnings
        self._transition(
            item,
            ImportStatus.COMPLETED,
            destination=str(result.destination),
            warnings=all_warnings,
            message="Reimported" if result.overwritten else "Imported",
        )

        if self.config.auto_delete_source and not cancel.is_set():
            self._delete_source(item)

    def _fail(self, item: DiscoveredItem, error: Exception) -> None:
        summary, detail = classify_error(error)
        with self._lock:
            if self._items.get(item.source_path) is not item:
                logger.error(f"Error in replaced pass for {item.source_name}: {detail}")
                return
            if is_terminal(item.status):
                logger.error(f"Error after pass finished for {item.source_name}: {detail}")
                return
        self._transition(
            item,
            ImportStatus.FAILED,
            error_summary=summary,
            error_detail=detail,
            ready_for_import=False,
            message=summary,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_auto_import(self, enabled: bool) -> None:
        """
        Change the policy for items discovered from now on.

        Raises:
            CommandRejected: enabling while the folders overlap
        """
        if enabled:
            conflict = self.config.folder_conflict()
            if conflict is not None:
                raise CommandRejected(conflict)
        self._auto_import = enabled
        logger.info(f"Auto-import {'enabled' if enabled else 'disabled'}")

    def trigger_import_now(self) -> int:
        """
        Import every item parked at the metadata checkpoint.

        Single-flight: a second trigger while a bulk run is active is refused.

        Returns:
            Number of items scheduled

        Raises:
            CommandRejected: bulk run active, folders overlap, or not running
        """
        conflict = self.config.folder_conflict()
        if conflict is not None:
            raise CommandRejected(conflict)

        with self._lock:
            if self._bulk_running:
                raise CommandRejected("Bulk import already running")
            keys = [
                key for key, item in self._items.items()
                if self._is_parked(item)
            ]
            if not keys:
                return 0
            self._bulk_running = True

        try:
            self._submit(self._run_bulk, keys)
        except CommandRejected:
            with self._lock:
                self._bulk_running = False
            raise
        logger.info(f"Bulk import scheduled for {len(keys)} item(s)")
        return len(keys)

    @staticmethod
    def _is_parked(item: DiscoveredItem) -> bool:
        return (
            not item.archived
            and item.ready_for_import
            and item.status == ImportStatus.READING_METADATA
        )

    def _run_bulk(self, keys: List[str]) -> None:
        try:
            for key in keys:
                if not self.guards.try_acquire(key):
                    logger.debug(f"Skipping {key}; another pass holds it")
                    continue
                try:
                    with self._lock:
                        item = self._items.get(key)
                        if item is None or not self._is_parked(item):
                            continue
                    self._import_locked(item)
                except Exception as e:
                    self._fail(item, e)
                finally:
                    self._release(key)
        finally:
            with self._lock:
                self._bulk_running = False

    def reimport(self, item_id: str) -> ItemSnapshot:
        """
        Start a fresh pass for a finished item.

        A duplicate or completed item is extracted again over its recorded
        destination; a failed item is retried from the start.

        Raises:
            ItemNotFoundError: unknown id
            CommandRejected: item still in progress, or folders overlap
        """
        conflict = self.config.folder_conflict()
        if conflict is not None:
            raise CommandRejected(conflict)

        with self._lock:
            key, item = self._find(item_id)
            if item.status not in TERMINAL_STATES or self.guards.is_active(key):
                raise CommandRejected(f"Item is still being processed: {item.source_name}")

            target = None
            if item.status in DELETABLE_STATES and item.destination:
                target = Path(item.destination)
            fresh = DiscoveredItem(
                id=item.id,
                source_path=key,
                auto_import=item.auto_import,
                pass_number=item.pass_number + 1,
                message="Reimport requested",
            )
            self._items[key] = fresh
            self._cancel[key] = threading.Event()
            self._reimports[key] = target
            snapshot = fresh.snapshot()

        logger.info(f"Reimport requested for {item.source_name} (target: {target})")
        self._publish(snapshot)
        self._submit(self._process_item, fresh)
        return snapshot

    def ignore(self, item_id: str) -> None:
        """
        Archive an item: hide it from the queue and stop polling it.

        Extraction already under way is allowed to finish. The source file
        and the index are not touched.
        """
        with self._lock:
            key, item = self._find(item_id)
            item.archived = True
            item.updated_at = datetime.now(timezone.utc)
            self._cancel[key].set()
            self._reimports.pop(key, None)
            snapshot = item.snapshot()
        logger.info(f"Ignored {item.source_name}")
        self._publish(snapshot)

    def request_source_deletion(self, item_id: str) -> bool:
        """
        Delete an item's source archive from the downloads folder.

        Returns:
            True if the file was removed. Failures are logged and recorded as
            a warning; the item keeps its status.

        Raises:
            ItemNotFoundError: unknown id
            CommandRejected: item is not completed or duplicate
        """
        with self._lock:
            key, item = self._find(item_id)
            if item.status not in DELETABLE_STATES:
                raise CommandRejected(
                    f"Source can only be deleted after import or duplicate detection "
                    f"(status: {item.status.value})"
                )
        return self._delete_source(item)

    def _delete_source(self, item: DiscoveredItem) -> bool:
        source = Path(item.source_path)
        try:
            delete_source_archive(source, self.config.downloads_dir, self.config.library_dir)
        except DeletionError as e:
            logger.warning(f"Could not delete source: {e}")
            with self._lock:
                warnings = item.warnings + [str(e)]
            self._update(item, warnings=warnings)
            return False
        self._update(item, message="Source archive deleted")
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> List[ItemSnapshot]:
        """Visible items, oldest first."""
        with self._lock:
            items = [item.snapshot() for item in self._items.values() if not item.archived]
        return sorted(items, key=lambda item: item.detected_at)

    def get_item(self, item_id: str) -> ItemSnapshot:
        with self._lock:
            _, item = self._find(item_id)
            return item.snapshot()

    def status(self) -> PipelineStatus:
        with self._lock:
            visible = [item for item in self._items.values() if not item.archived]
            active = sum(1 for item in visible if not is_terminal(item.status))
            bulk = self._bulk_running
        return PipelineStatus(
            running=self.is_running,
            watching=self.watcher is not None and self.watcher.is_running,
            watch_error=self.watch_error,
            downloads_dir=str(self.config.downloads_dir),
            library_dir=str(self.config.library_dir),
            auto_import=self._auto_import,
            auto_delete_source=self.config.auto_delete_source,
            folder_conflict=self.config.folder_conflict(),
            bulk_import_running=bulk,
            items_total=len(visible),
            items_active=active,
        )

    def subscribe(self) -> "queue.Queue[ItemSnapshot]":
        """Receive a snapshot after every item change."""
        updates: "queue.Queue[ItemSnapshot]" = queue.Queue()
        with self._lock:
            self._subscribers.append(updates)
        return updates

    def unsubscribe(self, updates: queue.Queue) -> None:
        with self._lock:
            if updates in self._subscribers:
                self._subscribers.remove(updates)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find(self, item_id: str):
        """Caller holds self._lock."""
        for key, item in self._items.items():
            if item.id == item_id and not item.archived:
                return key, item
        raise ItemNotFoundError(item_id)

    def _transition(self, item: DiscoveredItem, status: ImportStatus, **fields) -> bool:
        """Apply a status change. Returns False if the item was replaced and nothing changed."""
        with self._lock:
            if self._items.get(item.source_path) is not item:
                logger.debug(f"Dropping {status.value} from a replaced pass for {item.source_name}")
                return False
            validate_transition(item.status, status)
            item.status = status
            for name, value in fields.items():
                setattr(item, name, value)
            item.updated_at = datetime.now(timezone.utc)
            snapshot = item.snapshot()
        self._log_status(snapshot)
        self._publish(snapshot)
        return True

    def _update(self, item: DiscoveredItem, **fields) -> bool:
        with self._lock:
            if self._items.get(item.source_path) is not item:
                return False
            for name, value in fields.items():
                setattr(item, name, value)
            item.updated_at = datetime.now(timezone.utc)
            snapshot = item.snapshot()
        self._publish(snapshot)
        return True

    def _publish(self, snapshot: ItemSnapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for updates in subscribers:
            updates.put(snapshot.model_copy(deep=True))

    @staticmethod
    def _log_status(item: ItemSnapshot) -> None:
        name = item.source_name
        if item.status == ImportStatus.FAILED:
            logger.error(f"{name}: {item.error_summary} ({item.error_detail})")
        elif item.status == ImportStatus.DUPLICATE:
            logger.warning(f"{name}: duplicate of {item.destination}")
        elif item.status == ImportStatus.COMPLETED:
            logger.info(f"{name}: imported to {item.destination}")
        else:
            logger.info(f"{name}: {item.status.value}")
