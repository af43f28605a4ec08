# Overview: Keyed in-process lock table used to serialize work on a single item.

"""
Per-key mutual exclusion.

- Each key (an item code) gets its own lock, created on first use and
  dropped again once nobody holds or waits for it.
- Different keys never contend with each other; there is no global lock
  held while a caller waits.
- Waiting is bounded: hold() raises BusyError when the lock is not
  acquired within the timeout.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager

from .errors import BusyError


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockRegistry:
    def __init__(self, default_timeout: float = 5.0):
        self.default_timeout = default_timeout
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def init_app(self, app) -> None:
        self.default_timeout = app.config.get("ITEM_LOCK_TIMEOUT_SECONDS", self.default_timeout)
        app.extensions["item_locks"] = self

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _release(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str, timeout: float | None = None):
        """Hold the lock for `key` for the duration of the with-block."""
        wait = self.default_timeout if timeout is None else timeout
        entry = self._checkout(key)
        acquired = False
        try:
            acquired = entry.lock.acquire(timeout=wait)
            if not acquired:
                raise BusyError(
                    f"Item {key} is busy; retry shortly",
                    code=key,
                    retry_after_seconds=1,
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            self._release(key, entry)

    def is_held(self, key: str) -> bool:
        with self._guard:
            entry = self._entries.get(key)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
