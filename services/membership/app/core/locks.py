"""Per-membership mutual exclusion for payment submissions."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Dict


class MembershipLockRegistry:
    """Hands out one lock per membership id.

    Locks are reference counted and dropped once nobody holds or waits on
    them, so the registry does not grow with the number of memberships seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self._waiters: Dict[int, int] = {}

    @contextmanager
    def hold(self, membership_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(membership_id, threading.Lock())
            self._waiters[membership_id] = self._waiters.get(membership_id, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._waiters[membership_id] - 1
                if remaining:
                    self._waiters[membership_id] = remaining
                else:
                    del self._waiters[membership_id]
                    del self._locks[membership_id]

    def is_held(self, membership_id: int) -> bool:
        with self._guard:
            lock = self._locks.get(membership_id)
        return lock is not None and lock.locked()


membership_locks = MembershipLockRegistry()


__all__ = ["MembershipLockRegistry", "membership_locks"]
