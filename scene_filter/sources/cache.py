"""
Time-bounded cache for loaded segment databases and metadata lookups.

Each loader owns its cache instance; there are no module-level snapshots.
"""

import logging
import time
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    A small key -> value cache whose entries expire after ``ttl`` seconds.

    Args:
        ttl: Entry lifetime in seconds
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, T]] = {}

    def get(self, key: Hashable) -> Optional[T]:
        """Return the cached value, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        loaded_at, value = entry
        if self._clock() - loaded_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = (self._clock(), value)

    def get_or_load(self, key: Hashable, loader: Callable[[], Optional[T]]) -> Optional[T]:
        """Return the cached value or load, cache and return a fresh one."""
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or every entry when no key is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
