"""In-process keyed locks used to serialise ledger operations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Sequence


class KeyedLocks:
    """One mutex per key, acquired in a fixed global order.

    Keys are compared as strings, so every caller that needs several locks
    takes them in the same order and two callers can never wait on each other.
    Locks are not re-entrant: a thread must not hold a key it asks for again.
    A key's entry lives only while some caller holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, keys: Sequence[str]) -> List[threading.Lock]:
        with self._guard:
            locks = []
            for key in keys:
                lock = self._locks.get(key)
                if lock is None:
                    lock = threading.Lock()
                    self._locks[key] = lock
                self._holders[key] = self._holders.get(key, 0) + 1
                locks.append(lock)
            return locks

    def _checkin(self, keys: Sequence[str]) -> None:
        with self._guard:
            for key in keys:
                remaining = self._holders[key] - 1
                if remaining:
                    self._holders[key] = remaining
                else:
                    del self._holders[key]
                    del self._locks[key]

    @contextmanager
    def hold(self, *keys: object) -> Iterator[None]:
        """Acquire every key in canonical order and release in reverse."""

        ordered = sorted({str(key) for key in keys})
        locks = self._checkout(ordered)
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(ordered)


def account_key(user_id: object) -> str:
    return f"account:{user_id}"


def session_key(session_id: object) -> str:
    return f"session:{session_id}"
