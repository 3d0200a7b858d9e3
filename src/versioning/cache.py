"""Thread-safe TTL cache for version source lookups.

Keys are (ProjectRoot, Version-or-tag) tuples; the cache is the only state
shared between concurrent solves, so every access goes through a lock.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Optional

from constants import Constants


@dataclass
class CacheEntry:
    """A single cache entry with TTL."""

    value: Any
    expires_at: float
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at


class TTLCache:
    """TTL cache with a bounded number of entries."""

    def __init__(self, default_ttl: Optional[int] = None, max_entries: Optional[int] = None):
        """Initialize the cache.

        Args:
            default_ttl: Default time-to-live in seconds.
            max_entries: Entry count above which the oldest tenth is evicted.
        """
        self._default_ttl = default_ttl if default_ttl is not None else Constants.VERSION_CACHE_TTL_SEC
        self._max_entries = max_entries if max_entries is not None else Constants.VERSION_CACHE_MAX_ENTRIES
        self._cache: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired():
                del self._cache[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value, evicting the oldest entries when over capacity."""
        effective_ttl = ttl if ttl is not None else self._default_ttl
        with self._lock:
            self._cache[key] = CacheEntry(value=value, expires_at=time.time() + effective_ttl)
            if len(self._cache) > self._max_entries:
                self._evict_oldest(max(1, self._max_entries // 10))

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            now = time.time()
            expired = sum(1 for e in self._cache.values() if e.is_expired(now))
            return {
                "total_entries": len(self._cache),
                "expired_entries": expired,
                "active_entries": len(self._cache) - expired,
                "hits": self.hits,
                "misses": self.misses,
                "max_entries": self._max_entries,
                "default_ttl": self._default_ttl,
            }

    def _evict_oldest(self, count: int) -> None:
        # Caller holds the lock.
        oldest = sorted(self._cache, key=lambda k: self._cache[k].created_at)
        for key in oldest[:count]:
            del self._cache[key]
