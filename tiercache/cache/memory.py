"""
In-process LRU layer for tiercache.

Thin, thread-safe wrapper over :class:`cachetools.LRUCache` exposing the
minimal contract the tiered cache needs: ``get`` returning a
``(value, present)`` pair, ``add`` that may evict the least-recently-used
entry, ``remove``, ``len`` and ``keys``.  Expiry is not handled here;
entries carry their own ``expires_at`` and the caller decides.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Hashable, List, Optional, Tuple

from cachetools import LRUCache
from pydantic import BaseModel, Field

from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheEntry(BaseModel):
    """A single locally held value.

    Attributes:
        value: Opaque payload, never inspected.
        expires_at: UTC timestamp after which the entry is stale.
    """

    value: bytes
    expires_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at


class CacheStats(BaseModel):
    """Point-in-time snapshot of the local layer.

    Attributes:
        size: Number of entries currently held.
        keys: Keys currently held, in no defined order.
        hits: Lookups that found a valid entry.
        misses: Lookups that found nothing, or only a stale entry.
        evictions: Entries dropped to stay within capacity.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
    """

    size: int = 0
    keys: List[str] = Field(default_factory=list)
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    hit_rate: float = 0.0


class _EvictingLRU(LRUCache):
    """LRUCache that reports capacity evictions to a callback."""

    def __init__(self, maxsize: int, on_evict: Callable[[Hashable, Any], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key, value)
        return key, value


class LocalCache:
    """Bounded, recency-ordered, thread-safe in-memory cache.

    Args:
        max_entries: Maximum number of entries to retain.  When full,
            adding a new key discards the least-recently-used one.

    Raises:
        ConfigurationError: If ``max_entries`` is not a positive integer.
    """

    def __init__(self, max_entries: int) -> None:
        if isinstance(max_entries, bool) or not isinstance(max_entries, int) or max_entries <= 0:
            raise ConfigurationError(
                f"must provide a positive size, got {max_entries!r}"
            )
        self._lock = threading.Lock()
        self._cache = _EvictingLRU(max_entries, self._record_eviction)
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _record_eviction(self, key: Hashable, value: Any) -> None:
        # Called from inside add(), lock already held.
        self._evictions += 1
        logger.debug("Local entry evicted", extra={"cache_key": key})

    @property
    def max_entries(self) -> int:
        return int(self._cache.maxsize)

    def get(
        self,
        key: str,
        is_valid: Optional[Callable[[Any], bool]] = None,
    ) -> Tuple[Optional[Any], bool]:
        """Return ``(value, True)`` and mark *key* recently used, or ``(None, False)``.

        Args:
            key: Key to look up.
            is_valid: Optional check on the stored value.  A value that
                fails it is removed and the lookup counts as a miss.
        """
        with self._lock:
            try:
                value = self._cache[key]
            except KeyError:
                self._misses += 1
                return None, False
            if is_valid is not None and not is_valid(value):
                del self._cache[key]
                self._misses += 1
                logger.debug("Stale local entry dropped", extra={"cache_key": key})
                return None, False
            self._hits += 1
            return value, True

    def add(self, key: str, value: Any) -> bool:
        """Insert or overwrite *key*.

        Returns:
            ``True`` if an older entry was evicted to make room.
        """
        with self._lock:
            before = self._evictions
            self._cache[key] = value
            return self._evictions != before

    def remove(self, key: str) -> bool:
        """Drop *key*.  Returns ``True`` if it was present."""
        with self._lock:
            return self._cache.pop(key, _MISSING) is not _MISSING

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._cache.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def stats(self) -> CacheStats:
        """Return size, keys and counters under a single lock acquisition."""
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                size=len(self._cache),
                keys=list(self._cache.keys()),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                hit_rate=self._hits / total if total > 0 else 0.0,
            )
