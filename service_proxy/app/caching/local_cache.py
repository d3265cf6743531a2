"""
Bounded in-process cache tier.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

from cachetools import LRUCache

from shared.logging import get_logger
from .entry import CacheEntry


class LocalCache:
    """Capacity- and time-bounded LRU cache owned by this process.

    Capacity eviction is least-recently-used (a successful ``get`` refreshes
    recency). Time expiry is fixed at population: reads never move
    ``expires_at``. Entries whose deadline has passed are dropped when they
    are observed.
    """

    def __init__(self, max_entries: int, default_ttl: float, *, clock: Callable[[], float] = time.time):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self.logger = get_logger("proxy.cache.local")
        self._clock = clock
        self._entries: LRUCache = LRUCache(maxsize=max_entries)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if not isinstance(entry, CacheEntry) or entry.key != key:
                self.logger.warning("Discarding corrupted local cache entry", key=key)
                del self._entries[key]
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None

            return entry

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> CacheEntry:
        """Store ``value`` under ``key``; the tier's own TTL caps ``ttl``."""
        effective_ttl = self.default_ttl if ttl is None else min(ttl, self.default_ttl)
        now = self._clock()
        entry = CacheEntry(key=key, value=value, expires_at=now + effective_ttl)

        with self._lock:
            self._entries[key] = entry

        return entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "default_ttl_seconds": self.default_ttl,
            }
