"""
Per-item processing guards.

At most one processing pass per source path at a time. A pass that loses the
race returns immediately instead of blocking a worker; the guard remembers the
refusal so the holder can hand the path on when it releases.
"""

import threading
from typing import Set


class ItemGuards:
    """Thread-safe set of source paths currently being processed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Set[str] = set()
        self._refused: Set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                self._refused.add(key)
                return False
            self._active.add(key)
            return True

    def release(self, key: str) -> bool:
        """
        Release a held guard.

        Returns:
            True if another pass was refused while the guard was held
        """
        with self._lock:
            self._active.discard(key)
            if key in self._refused:
                self._refused.discard(key)
                return True
            return False

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active
