# -*- coding: utf-8 -*-
"""
Keyed advisory locks.

One re-entrant lock per key (a reporting record id), created on demand and
dropped once no holder or waiter remains. Different keys never contend.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.RLock()
        self.refs = 0


class KeyedLockRegistry:
    """Hands out a serialization lock per key.

    Example:
        >>> locks = KeyedLockRegistry()
        >>> with locks.hold("rec-1"):
        ...     pass
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until the lock for ``key`` is held; release on exit."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]

    def active_keys(self) -> List[Hashable]:
        """Keys currently held or waited on."""
        with self._guard:
            return list(self._entries)


__all__ = ["KeyedLockRegistry"]
