"""
Per-scope write locks for manager assignments.

Two requests changing the managers of the same entity run one after the
other; requests on different entities never wait for each other. Locks
are created on demand and dropped when the last holder or waiter leaves,
so the table never grows beyond the scopes currently being written.

Within a process this is the serialization point. Across processes the
facets also take SELECT ... FOR UPDATE on the scope row.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager

from factory_shared.config.logging import get_logger

logger = get_logger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0  # holders + waiters


class ScopeLockManager:
    """Keyed, reference-counted threading locks."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, _Entry] = {}
        # Guards _entries only; never held while waiting on a scope lock
        self._meta_lock = threading.Lock()

    @property
    def lock_count(self) -> int:
        with self._meta_lock:
            return len(self._entries)

    @contextmanager
    def hold(self, *key: Hashable) -> Iterator[None]:
        """
        Hold the lock for key for the duration of the block.

        Usage:
            with locks.hold("line", line_id):
                ...
        """
        with self._meta_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._meta_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]


# One table per process; every facet shares it
scope_locks = ScopeLockManager()
