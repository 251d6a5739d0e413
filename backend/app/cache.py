"""
In-process TTL caches.

Expired entries are evicted lazily on the next read of their key; nothing sweeps
the caches in the background. `cleanup_expired` sweeps on demand.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from threading import Lock
from typing import Any

from .settings import settings

logger = logging.getLogger(__name__)


class CacheEntry:
    __slots__ = ("value", "expires_at", "hits")

    def __init__(self, value: Any, expires_at: float | None) -> None:
        self.value = value
        self.expires_at = expires_at
        self.hits = 0

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at

    def increment_hits(self) -> None:
        self.hits += 1


class TTLCache:
    """Thread-safe LRU map whose entries expire after a TTL (None = never)."""

    def __init__(
        self,
        name: str,
        max_size: int = 1000,
        default_ttl: float | None = 300,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.clock = clock
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.enabled = enabled
        self._entries: OrderedDict[Hashable, CacheEntry] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Any | None:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self.clock()):
                del self._entries[key]
                self._misses += 1
                return None
            entry.increment_hits()
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        if not self.enabled:
            return
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = self.clock() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = CacheEntry(value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache %s evicted %r", self.name, evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "name": self.name,
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.default_ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": (self._hits / lookups) if lookups else 0.0,
            }


places_cache = TTLCache(
    "places", max_size=2048, default_ttl=float(settings.PLACES_CACHE_TTL_SECONDS)
)


def places_cache_key(lat: float, lng: float, category: str, radius: int) -> tuple:
    return (float(lat), float(lng), category, int(radius))


def get_cached_places(lat: float, lng: float, category: str, radius: int) -> list | None:
    return places_cache.get(places_cache_key(lat, lng, category, radius))


def cache_places(lat: float, lng: float, category: str, radius: int, results: list) -> None:
    places_cache.set(places_cache_key(lat, lng, category, radius), list(results))


def clear_all_caches() -> None:
    """Purge all in-process caches."""
    places_cache.clear()
    from .concierge.embeddings import embedding_cache

    embedding_cache.clear()


def get_all_cache_stats() -> dict[str, dict]:
    from .concierge.embeddings import embedding_cache

    return {
        "places": places_cache.get_stats(),
        "embeddings": embedding_cache.get_stats(),
    }
