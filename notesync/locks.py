from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator


class RecordLocks:
    """One lock per note ``local_id``; entries are dropped when nobody holds them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = {}

    @contextlib.contextmanager
    def hold(self, local_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(local_id, threading.Lock())
            self._waiters[local_id] = self._waiters.get(local_id, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._waiters[local_id] - 1
                if remaining:
                    self._waiters[local_id] = remaining
                else:
                    del self._waiters[local_id]
                    del self._locks[local_id]

    def active(self) -> int:
        with self._guard:
            return len(self._locks)
