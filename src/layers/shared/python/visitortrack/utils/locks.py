"""Per-key locking for check-then-act sections inside one process."""

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """Hands out one lock per key, dropping it when no holder remains.

    Only serializes threads in the current process; cross-process
    exclusion is the job of conditional writes in the repositories.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Acquire the lock for key for the duration of the block."""
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
