"""Per-key mutual exclusion for lead and sequence processing.

Ticks run on APScheduler worker threads and through the API, so two passes
over the same lead or sequence can overlap. Work for one key is serialized;
different keys proceed in parallel.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager


class KeyedLock:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._holders: dict[str, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            lock = self._locks[key]
            self._holders[key] += 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    # Nobody waiting: drop the entry so the table doesn't grow forever
                    del self._holders[key]
                    del self._locks[key]

    def is_held(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(key)
            return bool(lock and lock.locked())


lead_locks = KeyedLock()
sequence_locks = KeyedLock()
