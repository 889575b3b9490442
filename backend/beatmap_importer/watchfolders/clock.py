"""
Clock abstraction for polling loops.

Production code uses SystemClock. Tests substitute a fake clock so polling
state machines run deterministically without real sleeps.
"""

import threading
import time
from typing import Optional, Protocol


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> None: ...


class SystemClock:
    """Wall clock. Sleeping wakes early when the cancel event is set."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> None:
        if cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)
