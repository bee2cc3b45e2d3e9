import threading
from contextlib import contextmanager
from typing import Dict, List

from tunebuzz.errors import Conflict


class KeyedLocks:
    """Re-entrant mutual exclusion per key (game id, lobby id).

    Locks are created on first use and dropped once nobody holds or waits on
    them, so distinct keys never contend and the registry does not grow with
    finished games.
    """

    def __init__(self, timeout_sec: float = 5.0):
        self.timeout_sec = timeout_sec
        self._guard = threading.Lock()
        # key -> [lock, number of holders + waiters]
        self._locks: Dict[str, List] = {}

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        lock = entry[0]
        acquired = lock.acquire(timeout=self.timeout_sec)
        try:
            if not acquired:
                raise Conflict(f'{key} is busy, try again')
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0 and self._locks.get(key) is entry:
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)
