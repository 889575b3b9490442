"""
File stability detection.

Uses polling to determine when a download has finished writing.
A file is considered stable when its size and modification time have not
changed for N consecutive checks. Each check also opens the file and reads
a byte, so a file whose writer still holds it exclusively counts as changed.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .clock import Clock, SystemClock
from .models import FileReading, FileStabilityCheck, StabilityResult, StabilityState

ProgressCallback = Callable[[int, int], None]


class FileStabilityChecker:
    """
    Poll-based file stability detector.

    Configuration:
        interval_ms: Milliseconds between checks (default: 700)
        consecutive_checks: Unchanged readings required (default: 3)
        timeout_secs: Give up after this long (default: 120)

    Example:
        With defaults, a finished file is stable after one baseline reading
        plus 3 unchanged polls, about 2.1 seconds.
    """

    def __init__(
        self,
        consecutive_checks: int = 3,
        interval_ms: int = 700,
        timeout_secs: float = 120.0,
        clock: Optional[Clock] = None,
    ):
        if consecutive_checks < 1:
            raise ValueError("consecutive_checks must be >= 1")
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        if timeout_secs <= 0:
            raise ValueError("timeout_secs must be > 0")

        self.consecutive_checks = consecutive_checks
        self.interval_ms = interval_ms
        self.timeout_secs = timeout_secs
        self.clock = clock or SystemClock()

        # {path: (last reading or None, consecutive unchanged count)}
        self._file_state: Dict[str, Tuple[Optional[FileReading], int]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "FileStabilityChecker":
        return cls(
            consecutive_checks=settings.consecutive_checks,
            interval_ms=settings.interval_ms,
            timeout_secs=settings.timeout_secs,
            clock=clock,
        )

    @staticmethod
    def read_file(path: Path) -> Optional[FileReading]:
        """
        Probe the file and return its size and mtime.

        Returns None when the file cannot be opened or yields no byte.
        """
        try:
            with open(path, "rb") as f:
                if not f.read(1):
                    return None
            stat = os.stat(path)
        except OSError:
            return None
        return FileReading(size_bytes=stat.st_size, mtime_ns=stat.st_mtime_ns)

    def check_stability(self, path: Path) -> FileStabilityCheck:
        """
        Take one reading and compare it with the previous one for this path.

        Returns:
            FileStabilityCheck with stability status
        """
        path_str = str(Path(path).absolute())
        reading = self.read_file(Path(path))

        with self._lock:
            previous, count = self._file_state.get(path_str, (None, -1))

            if reading is None:
                self._file_state[path_str] = (None, 0)
                return FileStabilityCheck(
                    path=path_str,
                    is_stable=False,
                    size_bytes=None,
                    check_count=0,
                    reason="File not readable",
                )

            if count < 0:
                # First reading becomes the baseline
                self._file_state[path_str] = (reading, 0)
                return FileStabilityCheck(
                    path=path_str,
                    is_stable=False,
                    size_bytes=reading.size_bytes,
                    check_count=0,
                    reason=f"Baseline reading (need {self.consecutive_checks} unchanged checks)",
                )

            if previous is not None and reading == previous:
                count += 1
                self._file_state[path_str] = (reading, count)
                is_stable = count >= self.consecutive_checks
                return FileStabilityCheck(
                    path=path_str,
                    is_stable=is_stable,
                    size_bytes=reading.size_bytes,
                    check_count=count,
                    reason=None if is_stable else f"Stable for {count}/{self.consecutive_checks} checks",
                )

            self._file_state[path_str] = (reading, 0)
            prev_size = previous.size_bytes if previous is not None else None
            return FileStabilityCheck(
                path=path_str,
                is_stable=False,
                size_bytes=reading.size_bytes,
                check_count=0,
                reason=f"File changed (prev size: {prev_size}, current: {reading.size_bytes})",
            )

    def wait_until_stable(
        self,
        path: Path,
        cancel: Optional[threading.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> StabilityResult:
        """
        Poll until the file is stable, the timeout elapses, or cancel is set.

        State machine: Start -> Polling -> {Stable | TimedOut}. Cancellation
        is checked once per interval.
        """
        path = Path(path)
        path_str = str(path.absolute())
        interval = self.interval_ms / 1000.0
        start = self.clock.monotonic()

        if not path.exists():
            return StabilityResult(path=path_str, state=StabilityState.MISSING)

        self.reset_tracking(path)
        self.check_stability(path)
        polls = 0
        count = 0

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    return self._result(path_str, StabilityState.CANCELLED, count, polls, start)

                self.clock.sleep(interval, cancel)

                if cancel is not None and cancel.is_set():
                    return self._result(path_str, StabilityState.CANCELLED, count, polls, start)
                if self.clock.monotonic() - start > self.timeout_secs:
                    return self._result(path_str, StabilityState.TIMED_OUT, count, polls, start)

                check = self.check_stability(path)
                polls += 1
                count = check.check_count
                if on_progress is not None:
                    on_progress(count, self.consecutive_checks)
                if check.is_stable:
                    return self._result(path_str, StabilityState.STABLE, count, polls, start)
        finally:
            self.reset_tracking(path)

    def _result(
        self, path_str: str, state: StabilityState, count: int, polls: int, start: float
    ) -> StabilityResult:
        return StabilityResult(
            path=path_str,
            state=state,
            check_count=count,
            polls=polls,
            elapsed_seconds=self.clock.monotonic() - start,
        )

    def reset_tracking(self, path: Path) -> None:
        """Forget the readings recorded for a file."""
        with self._lock:
            self._file_state.pop(str(Path(path).absolute()), None)

    def clear_all_tracking(self) -> None:
        """
        Clear all file stability tracking.

        Used primarily for testing or when resetting watch folder state.
        """
        with self._lock:
            self._file_state.clear()
