"""
Tests for IngestionPipeline - end-to-end passes on a fake clock.

These tests verify:
1. Manual enqueue parks at the metadata checkpoint until "import now"
2. Auto-import policy is fixed when an item is discovered
3. Duplicate detection by set id and by content hash
4. Reimport overwrites the recorded destination
5. Item failures are isolated and classified
6. Ignore, source deletion and folder-overlap rules
"""

import json
import logging
import os
import queue
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

import pytest

from beatmap_importer import cli
from beatmap_importer.archives.errors import ArchiveError
from beatmap_importer.archives.reader import ArchiveReader
from beatmap_importer.config.settings import StabilitySettings
from beatmap_importer.importing.errors import PathSafetyViolation
from beatmap_importer.persistence.store import IndexStore
from beatmap_importer.pipeline.engine import IngestionPipeline
from beatmap_importer.pipeline.errors import (
    CommandRejected,
    InvalidStateTransitionError,
    ItemNotFoundError,
    classify_error,
)
from beatmap_importer.pipeline.guards import ItemGuards
from beatmap_importer.pipeline.models import DiscoveredItem, ImportStatus
from beatmap_importer.pipeline.state import can_transition, validate_import_allowed, validate_transition
from beatmap_importer.watchfolders.errors import StabilityTimeout
from beatmap_importer.watchfolders.watcher import FolderWatcher

from conftest import osu_text

WAIT = 10.0
SET_FOLDER = "Someone - Song (Mapper) [12345]"


class StubObserver:
    def schedule(self, handler, path, recursive=False):
        pass

    def start(self):
        pass

    def stop(self):
        pass

    def join(self, timeout=None):
        pass


class GatedReader(ArchiveReader):
    """Counts reads; optionally blocks the first one until released, then fails it."""

    def __init__(self, gate_first=False, fail_first=False):
        self.gate_first = gate_first
        self.fail_first = fail_first
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def read(self, archive_path):
        with self._lock:
            self.calls += 1
            first = self.calls == 1
        if first and self.gate_first:
            self.entered.set()
            assert self.release.wait(WAIT)
            if self.fail_first:
                raise ArchiveError(str(archive_path), "damaged on first read")
        return super().read(archive_path)


@pytest.fixture
def make_pipeline(make_config, fake_clock):
    """Factory for started pipelines; all are stopped after the test."""
    created = []

    def _make(watch=False, watcher_factory=FolderWatcher, reader=None, **config_overrides):
        config = make_config(**config_overrides)
        pipeline = IngestionPipeline(
            config, clock=fake_clock, reader=reader, watcher_factory=watcher_factory
        )
        pipeline.start(watch=watch)
        created.append(pipeline)
        return pipeline

    yield _make

    for pipeline in created:
        pipeline.stop()


def _run(pipeline, path):
    item = pipeline.enqueue(path)
    assert pipeline.wait_idle(WAIT)
    return pipeline.get_item(item.id)


def _import_now(pipeline, item_id):
    pipeline.trigger_import_now()
    assert pipeline.wait_idle(WAIT)
    return pipeline.get_item(item_id)


# -----------------------------------------------------------------------------
# Happy path
# -----------------------------------------------------------------------------

class TestManualImport:

    def test_parks_at_metadata_checkpoint(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline()

        item = _run(pipeline, build_osz())

        assert item.status == ImportStatus.READING_METADATA
        assert item.ready_for_import
        assert item.stability_confirmed
        assert item.duplicate_checked
        assert item.stability_checks == item.stability_required == 3
        assert item.metadata.title == "Song"
        assert item.metadata.beatmap_set_id == 12345
        assert len(item.content_hash) == 64
        assert os.path.isfile(item.thumbnail_path)
        assert list((tmp_path / "library").iterdir()) == []

    def test_import_now_completes_parked_items(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline()
        parked = _run(pipeline, build_osz())

        item = _import_now(pipeline, parked.id)

        assert item.status == ImportStatus.COMPLETED
        assert item.destination == str(tmp_path / "library" / SET_FOLDER)
        assert (tmp_path / "library" / SET_FOLDER / "bg.jpg").is_file()
        assert not item.ready_for_import

        store = IndexStore.load(pipeline.config.index_path)
        assert store.find_set(12345).destination == item.destination
        assert store.find_hash(item.content_hash).destination == item.destination

    def test_import_now_with_nothing_parked(self, make_pipeline):
        assert make_pipeline().trigger_import_now() == 0

    def test_bulk_import_is_single_flight(self, make_pipeline, build_osz):
        """A second trigger while extraction is under way is refused."""
        pipeline = make_pipeline()
        parked = _run(pipeline, build_osz())
        entered = threading.Event()
        release = threading.Event()
        real_import = pipeline.importer.import_archive

        def slow_import(*args, **kwargs):
            entered.set()
            assert release.wait(WAIT)
            return real_import(*args, **kwargs)

        with mock.patch.object(pipeline.importer, "import_archive", side_effect=slow_import):
            try:
                assert pipeline.trigger_import_now() == 1
                assert entered.wait(WAIT)

                assert pipeline.status().bulk_import_running
                with pytest.raises(CommandRejected, match="already running"):
                    pipeline.trigger_import_now()
            finally:
                release.set()
            assert pipeline.wait_idle(WAIT)

        assert pipeline.get_item(parked.id).status == ImportStatus.COMPLETED
        assert not pipeline.status().bulk_import_running
        assert pipeline.trigger_import_now() == 0

    def test_auto_import_completes_without_command(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)

        item = _run(pipeline, build_osz())

        assert item.status == ImportStatus.COMPLETED
        assert item.auto_import

    def test_subscribers_see_every_status(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        updates = pipeline.subscribe()

        _run(pipeline, build_osz())

        seen = []
        while True:
            try:
                snapshot = updates.get_nowait()
            except queue.Empty:
                break
            if not seen or seen[-1] != snapshot.status:
                seen.append(snapshot.status)
        assert seen == [
            ImportStatus.DETECTED,
            ImportStatus.WAITING,
            ImportStatus.READING_METADATA,
            ImportStatus.IMPORTING,
            ImportStatus.COMPLETED,
        ]

        pipeline.unsubscribe(updates)
        _run(pipeline, build_osz("later.osz", set_id=2, title="Later"))
        assert updates.empty()

    def test_enqueue_missing_file_rejected(self, make_pipeline, tmp_path):
        with pytest.raises(CommandRejected):
            make_pipeline().enqueue(tmp_path / "nope.osz")

    def test_corrupt_thumbnail_is_only_a_warning(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz(entries={"a.osu": osu_text(), "bg.jpg": b"not an image"})

        item = _run(pipeline, path)

        assert item.status == ImportStatus.COMPLETED
        assert item.thumbnail_path is None
        assert any("Thumbnail failed" in w for w in item.warnings)


# -----------------------------------------------------------------------------
# Auto-import policy
# -----------------------------------------------------------------------------

class TestAutoImportPolicy:

    def test_toggle_applies_to_later_discoveries_only(self, make_pipeline, build_osz):
        pipeline = make_pipeline()
        early = _run(pipeline, build_osz("early.osz", set_id=1, title="Early"))

        pipeline.set_auto_import(True)
        late = _run(pipeline, build_osz("late.osz", set_id=2, title="Late"))

        assert pipeline.get_item(early.id).status == ImportStatus.READING_METADATA
        assert late.status == ImportStatus.COMPLETED

    def test_overlap_blocks_automatic_import(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline(library_dir=tmp_path / "downloads" / "Songs", auto_import=True)

        item = _run(pipeline, build_osz())

        assert item.status == ImportStatus.READING_METADATA
        assert item.ready_for_import
        assert "inside the downloads" in item.message
        with pytest.raises(CommandRejected):
            pipeline.trigger_import_now()
        with pytest.raises(CommandRejected):
            pipeline.set_auto_import(True)

    def test_status_reports_conflict(self, make_pipeline, tmp_path):
        pipeline = make_pipeline(library_dir=tmp_path / "downloads")

        status = pipeline.status()

        assert status.running
        assert status.folder_conflict is not None


# -----------------------------------------------------------------------------
# Duplicates and reimport
# -----------------------------------------------------------------------------

class TestDuplicates:

    def test_same_set_id_is_duplicate(self, make_pipeline, build_osz, tmp_path):
        """A second archive of set 12345 points at the first import."""
        pipeline = make_pipeline(auto_import=True)
        first = _run(pipeline, build_osz("first.osz", set_id=12345))

        second = _run(pipeline, build_osz("second.osz", set_id=12345, version="Another"))

        assert second.status == ImportStatus.DUPLICATE
        assert second.duplicate_key == "set_id"
        assert second.destination == first.destination
        assert [p.name for p in (tmp_path / "library").iterdir()] == [SET_FOLDER]

    def test_same_content_without_set_id_is_duplicate(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline(auto_import=True)
        first_path = build_osz("a.osz", set_id=None)
        first = _run(pipeline, first_path)

        copy = tmp_path / "downloads" / "copy.osz"
        copy.write_bytes(first_path.read_bytes())
        second = _run(pipeline, copy)

        assert second.status == ImportStatus.DUPLICATE
        assert second.duplicate_key == "content_hash"
        assert second.destination == first.destination

    def test_existing_folder_without_index_entry_is_duplicate(self, make_pipeline, build_osz, tmp_path):
        (tmp_path / "library" / SET_FOLDER).mkdir(parents=True)
        pipeline = make_pipeline(auto_import=True)

        item = _run(pipeline, build_osz())

        assert item.status == ImportStatus.DUPLICATE
        assert item.destination == str(tmp_path / "library" / SET_FOLDER)

    def test_rediscovered_file_starts_new_pass(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz()
        first = _run(pipeline, path)

        again = _run(pipeline, path)

        assert again.id == first.id
        assert again.pass_number == 2
        assert again.status == ImportStatus.DUPLICATE

    def test_reimport_overwrites_destination(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline(auto_import=True)
        first = _run(pipeline, build_osz("first.osz"))
        stale = tmp_path / "library" / SET_FOLDER / "stale.txt"
        stale.write_text("old")
        duplicate = _run(pipeline, build_osz("second.osz", version="Another"))
        before = datetime(2020, 1, 1, tzinfo=timezone.utc)
        pipeline.duplicates.record_import(12345, first.content_hash, Path(first.destination), imported_at=before)

        pipeline.reimport(duplicate.id)
        assert pipeline.wait_idle(WAIT)
        item = pipeline.get_item(duplicate.id)

        assert item.status == ImportStatus.COMPLETED
        assert item.message == "Reimported"
        assert item.destination == first.destination
        assert not stale.exists()
        store = IndexStore.load(pipeline.config.index_path)
        assert len(store.document.beatmap_sets) == 1
        assert store.find_set(12345).imported_at > before

    def test_reimport_rejected_while_in_progress(self, make_pipeline, build_osz):
        pipeline = make_pipeline()
        parked = _run(pipeline, build_osz())

        with pytest.raises(CommandRejected):
            pipeline.reimport(parked.id)

    def test_unknown_item(self, make_pipeline):
        pipeline = make_pipeline()

        with pytest.raises(ItemNotFoundError):
            pipeline.reimport("missing")
        with pytest.raises(ItemNotFoundError):
            pipeline.get_item("missing")


# -----------------------------------------------------------------------------
# Failures
# -----------------------------------------------------------------------------

class TestFailures:

    def test_corrupt_archive_fails_without_affecting_others(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline(auto_import=True)
        broken = tmp_path / "downloads" / "broken.osz"
        broken.write_bytes(b"definitely not a zip")

        bad = pipeline.enqueue(broken)
        good = pipeline.enqueue(build_osz())
        assert pipeline.wait_idle(WAIT)

        bad = pipeline.get_item(bad.id)
        assert bad.status == ImportStatus.FAILED
        assert bad.error_summary == "Could not read the archive"
        assert "broken.osz" in bad.error_detail
        assert pipeline.get_item(good.id).status == ImportStatus.COMPLETED

    def test_traversal_archive_fails_and_writes_nothing(self, make_pipeline, build_osz, tmp_path):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz(entries={"a.osu": osu_text(), "../../evil.dll": b"MZ"})

        item = _run(pipeline, path)

        assert item.status == ImportStatus.FAILED
        assert item.error_summary == "Archive contains unsafe paths"
        assert list((tmp_path / "library").iterdir()) == []
        assert not list(tmp_path.rglob("evil.dll"))

    def test_growing_download_times_out(self, make_pipeline, build_osz, fake_clock):
        pipeline = make_pipeline()
        path = build_osz()

        def keep_growing():
            with open(path, "ab") as f:
                f.write(b"\0" * 4096)

        fake_clock.on_sleep = keep_growing

        item = _run(pipeline, path)

        assert item.status == ImportStatus.FAILED
        assert item.error_summary == "Download did not finish in time"
        assert item.metadata is None

    def test_missing_source_fails(self, make_pipeline, tmp_path):
        """A notified path that is gone before polling starts."""
        pipeline = make_pipeline()

        pipeline.submit_path(tmp_path / "downloads" / "vanished.osz")
        assert pipeline.wait_idle(WAIT)

        (item,) = pipeline.snapshot()
        assert item.status == ImportStatus.FAILED
        assert item.error_summary == "Source file not found"


# -----------------------------------------------------------------------------
# Ignore and source deletion
# -----------------------------------------------------------------------------

class TestIgnoreAndDelete:

    def test_ignore_hides_item_and_keeps_source(self, make_pipeline, build_osz):
        pipeline = make_pipeline()
        path = build_osz()
        item = _run(pipeline, path)

        pipeline.ignore(item.id)

        assert pipeline.snapshot() == []
        assert path.exists()
        with pytest.raises(ItemNotFoundError):
            pipeline.get_item(item.id)

    def test_ignore_stops_polling(self, make_pipeline, build_osz, fake_clock, tmp_path):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz()

        def grow_then_ignore():
            with open(path, "ab") as f:
                f.write(b"\0")
            visible = pipeline.snapshot()
            if fake_clock.sleeps == 3 and visible:
                pipeline.ignore(visible[0].id)

        fake_clock.on_sleep = grow_then_ignore

        pipeline.enqueue(path)
        assert pipeline.wait_idle(WAIT)

        assert fake_clock.sleeps == 3
        assert pipeline.snapshot() == []
        assert list((tmp_path / "library").iterdir()) == []

    def test_delete_source_after_completion(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz()
        item = _run(pipeline, path)

        assert pipeline.request_source_deletion(item.id)
        assert not path.exists()
        assert pipeline.get_item(item.id).status == ImportStatus.COMPLETED

    def test_delete_source_of_duplicate(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        _run(pipeline, build_osz("first.osz"))
        path = build_osz("second.osz", version="Another")
        duplicate = _run(pipeline, path)

        assert pipeline.request_source_deletion(duplicate.id)
        assert not path.exists()

    def test_delete_refused_before_import(self, make_pipeline, build_osz):
        pipeline = make_pipeline()
        path = build_osz()
        parked = _run(pipeline, path)

        with pytest.raises(CommandRejected):
            pipeline.request_source_deletion(parked.id)
        assert path.exists()

    def test_failed_deletion_is_warning_only(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True)
        path = build_osz()
        item = _run(pipeline, path)
        path.unlink()

        assert pipeline.request_source_deletion(item.id) is False
        after = pipeline.get_item(item.id)
        assert after.status == ImportStatus.COMPLETED
        assert any("not found" in w for w in after.warnings)

    def test_auto_delete_source(self, make_pipeline, build_osz):
        pipeline = make_pipeline(auto_import=True, auto_delete_source=True)
        path = build_osz()

        item = _run(pipeline, path)

        assert item.status == ImportStatus.COMPLETED
        assert not path.exists()


# -----------------------------------------------------------------------------
# Concurrency
# -----------------------------------------------------------------------------

def _eventually(condition, timeout=WAIT):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


class TestConcurrentPasses:

    def test_slow_download_does_not_stall_new_files(self, make_pipeline, build_osz, fake_clock):
        """A file still growing keeps polling while a later file is read."""
        pipeline = make_pipeline(
            stability=StabilitySettings(consecutive_checks=3, interval_ms=10, timeout_secs=600),
        )
        slow = build_osz("slow.osz", set_id=1, title="Slow")
        fast = build_osz("fast.osz", set_id=2, title="Fast")
        slow_status_when_fast_parked = []

        def slow_download():
            items = {item.source_name: item for item in pipeline.snapshot()}
            fast_item = items.get("fast.osz")
            if fast_item is not None and fast_item.ready_for_import:
                if not slow_status_when_fast_parked:
                    slow_status_when_fast_parked.append(items["slow.osz"].status)
                return
            with open(slow, "ab") as f:
                f.write(b"\0")

        fake_clock.on_sleep = slow_download

        slow_item = pipeline.enqueue(slow)
        fast_item = pipeline.enqueue(fast)
        assert pipeline.wait_idle(WAIT)

        assert slow_status_when_fast_parked == [ImportStatus.WAITING]
        assert pipeline.get_item(fast_item.id).ready_for_import
        assert pipeline.get_item(slow_item.id).ready_for_import

    def test_rediscovery_while_waiting_runs_one_pass(self, make_pipeline, build_osz, fake_clock):
        reader = GatedReader()
        pipeline = make_pipeline(reader=reader)
        path = build_osz()
        repeats = []

        def rediscover():
            if not repeats:
                repeats.append(pipeline.enqueue(path))
                pipeline.submit_path(path)

        fake_clock.on_sleep = rediscover

        first = pipeline.enqueue(path)
        assert pipeline.wait_idle(WAIT)

        assert repeats[0].id == first.id
        assert repeats[0].status == ImportStatus.WAITING
        assert reader.calls == 1
        (item,) = pipeline.snapshot()
        assert item.pass_number == 1
        assert item.ready_for_import

    def test_ignored_pass_leaves_rediscovered_item_alone(self, make_pipeline, build_osz, caplog):
        """The new item waits for the old pass, then runs its own."""
        reader = GatedReader(gate_first=True)
        pipeline = make_pipeline(reader=reader)
        path = build_osz()

        with caplog.at_level(logging.DEBUG, logger="beatmap_importer.pipeline.engine"):
            first = pipeline.enqueue(path)
            assert reader.entered.wait(WAIT)
            pipeline.ignore(first.id)
            second = pipeline.enqueue(path)
            assert _eventually(lambda: "deferring" in caplog.text)
            assert pipeline.get_item(second.id).status == ImportStatus.DETECTED

            reader.release.set()
            assert pipeline.wait_idle(WAIT)

        item = pipeline.get_item(second.id)
        assert item.pass_number == 2
        assert item.status == ImportStatus.READING_METADATA
        assert item.ready_for_import
        assert item.stability_confirmed
        assert reader.calls == 2
        assert [i.pass_number for i in pipeline.snapshot()] == [2]

    def test_error_in_ignored_pass_does_not_fail_new_item(self, make_pipeline, build_osz):
        reader = GatedReader(gate_first=True, fail_first=True)
        pipeline = make_pipeline(reader=reader)
        path = build_osz()

        first = pipeline.enqueue(path)
        assert reader.entered.wait(WAIT)
        pipeline.ignore(first.id)
        second = pipeline.enqueue(path)
        reader.release.set()
        assert pipeline.wait_idle(WAIT)

        item = pipeline.get_item(second.id)
        assert item.status == ImportStatus.READING_METADATA
        assert item.error_summary is None
        assert item.metadata.title == "Song"
        assert reader.calls == 2


# -----------------------------------------------------------------------------
# Watcher integration
# -----------------------------------------------------------------------------

class TestWatcherIntegration:

    def test_existing_archives_picked_up_on_start(self, make_pipeline, build_osz):
        build_osz("waiting.osz")

        pipeline = make_pipeline(
            watch=True,
            watcher_factory=lambda folder, cb: FolderWatcher(folder, cb, observer_factory=StubObserver),
        )
        assert pipeline.wait_idle(WAIT)

        items = pipeline.snapshot()
        assert [i.source_name for i in items] == ["waiting.osz"]
        assert items[0].status == ImportStatus.READING_METADATA
        assert pipeline.status().watching

    def test_watch_error_keeps_manual_enqueue(self, make_pipeline, build_osz, tmp_path):
        archive = build_osz(directory=tmp_path / "elsewhere")
        pipeline = make_pipeline(watch=True, downloads_dir=tmp_path / "missing")

        assert pipeline.watch_error is not None
        assert not pipeline.status().watching

        item = _run(pipeline, archive)
        assert item.status == ImportStatus.READING_METADATA


# -----------------------------------------------------------------------------
# Building blocks
# -----------------------------------------------------------------------------

class TestStateMachine:

    def test_forward_transitions(self):
        assert can_transition(ImportStatus.DETECTED, ImportStatus.WAITING)
        assert can_transition(ImportStatus.READING_METADATA, ImportStatus.DUPLICATE)
        assert not can_transition(ImportStatus.WAITING, ImportStatus.DETECTED)
        assert not can_transition(ImportStatus.DETECTED, ImportStatus.IMPORTING)

    def test_failed_reachable_from_any_non_terminal(self):
        for status in (ImportStatus.DETECTED, ImportStatus.WAITING,
                       ImportStatus.READING_METADATA, ImportStatus.IMPORTING):
            assert can_transition(status, ImportStatus.FAILED)

    def test_terminal_states_are_immutable(self):
        for status in (ImportStatus.COMPLETED, ImportStatus.DUPLICATE, ImportStatus.FAILED):
            with pytest.raises(InvalidStateTransitionError):
                validate_transition(status, ImportStatus.FAILED)

    def test_import_requires_stability_and_duplicate_check(self):
        item = DiscoveredItem(source_path="/dl/a.osz", status=ImportStatus.READING_METADATA)

        with pytest.raises(InvalidStateTransitionError, match="stability"):
            validate_import_allowed(item)

        item.stability_confirmed = True
        with pytest.raises(InvalidStateTransitionError, match="duplicate"):
            validate_import_allowed(item)


class TestClassifyError:

    def test_known_errors(self):
        assert classify_error(StabilityTimeout("/a.osz", 120))[0] == "Download did not finish in time"
        assert classify_error(ArchiveError("/a.osz", "bad"))[0] == "Could not read the archive"
        assert classify_error(PathSafetyViolation("../x", "traversal"))[0] == "Archive contains unsafe paths"
        assert classify_error(PermissionError("denied"))[0] == "Could not write to the library folder"

    def test_unknown_error_keeps_detail(self):
        summary, detail = classify_error(RuntimeError("boom"))

        assert summary == "Import failed"
        assert detail == "boom"


class TestItemGuards:

    def test_second_acquire_fails_until_release(self):
        guards = ItemGuards()

        assert guards.try_acquire("a")
        assert not guards.try_acquire("a")
        guards.release("a")
        assert guards.try_acquire("a")

    def test_release_reports_refused_pass(self):
        guards = ItemGuards()
        guards.try_acquire("a")

        assert not guards.try_acquire("a")
        assert guards.release("a") is True
        assert not guards.is_active("a")

    def test_release_without_contention(self):
        guards = ItemGuards()
        guards.try_acquire("a")

        assert guards.release("a") is False

    def test_refusal_is_reported_once(self):
        guards = ItemGuards()
        guards.try_acquire("a")
        guards.try_acquire("a")
        guards.release("a")

        guards.try_acquire("a")
        assert guards.release("a") is False


# -----------------------------------------------------------------------------
# One-shot CLI import
# -----------------------------------------------------------------------------

class TestImportCommand:

    def test_import_command_exit_codes(self, tmp_path, build_osz, capsys):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({
            "downloads_dir": str(tmp_path / "downloads"),
            "library_dir": str(tmp_path / "library"),
            "data_dir": str(tmp_path / "data"),
            "stability": {"consecutive_checks": 2, "interval_ms": 10, "timeout_secs": 5},
        }))
        good = build_osz()
        broken = tmp_path / "downloads" / "broken.osz"
        broken.write_bytes(b"nope")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(config_path), "import", str(good)])
        assert exc_info.value.code == cli.EXIT_OK
        assert (tmp_path / "library" / SET_FOLDER).is_dir()

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(config_path), "import", str(good), str(broken)])
        assert exc_info.value.code == cli.EXIT_PARTIAL

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(config_path), "import", str(broken)])
        assert exc_info.value.code == cli.EXIT_EXECUTION
