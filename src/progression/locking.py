"""Per-user lock registry enforcing single-writer updates within one process."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class UserLockRegistry:
    """
    Hands out one re-entrant lock per user.

    Re-entrant because an operation cascades (streak -> award -> badge ->
    award) while already holding the user's lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        lock = self.lock_for(user_id)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
