"""
Key-value persistence boundary.

The host owns storage; the updater only needs get/set/delete on JSON-like
values plus a per-key lock so read-modify-write sequences (registry
reconciliation) do not interleave.
"""

import copy
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple


class KeyValueStore(ABC):
    """
    Abstract store used for license options, cached responses and the
    shared update registry.
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The stored value, or None when absent or expired
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Write a value.

        Args:
            key: Storage key
            value: JSON-compatible value
            ttl: Seconds until the value expires; None or 0 keeps it forever
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a value; missing keys are ignored."""

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold the re-entrant lock for ``key`` for the duration of the block."""
        with self._locks_guard:
            key_lock = self._locks.setdefault(key, threading.RLock())
        with key_lock:
            yield


class MemoryStore(KeyValueStore):
    """Process-local store; values are deep-copied in and out."""

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__()
        self.clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    def get(self, key: str) -> Optional[Any]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self.clock() >= expires_at:
            del self._data[key]
            return None
        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self.clock() + ttl if ttl else None
        self._data[key] = (copy.deepcopy(value), expires_at)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
