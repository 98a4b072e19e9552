"""Per-key locks shared by telemetry ingestion and the alert sweep.

Ingestion and the sweep only exclude each other when they hold the same
KeyedLocks instance. Components built on one store get that instance from
``shared_locks(store)`` unless one is passed in explicitly.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Dict, Iterator, List


class KeyedLocks:
    """A lock per key (cooler id), dropped once nobody holds or waits on it.

    Writers touching one cooler's telemetry or its drugs' usability
    fields hold that cooler's lock; different coolers proceed in parallel.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

    def is_held(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(key)
            return lock is not None and lock.locked()

    def active_keys(self) -> List[str]:
        """Keys currently held or waited on."""
        with self._guard:
            return sorted(self._locks)


_shared: "weakref.WeakKeyDictionary[object, KeyedLocks]" = weakref.WeakKeyDictionary()
_shared_guard = threading.Lock()


def shared_locks(owner: object) -> KeyedLocks:
    """The KeyedLocks every component working on ``owner`` should use."""
    with _shared_guard:
        locks = _shared.get(owner)
        if locks is None:
            locks = _shared[owner] = KeyedLocks()
        return locks
