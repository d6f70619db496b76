"""Cache layers (local LRU, Redis) and the tiered orchestrator."""

from tiercache.cache.memory import CacheEntry, CacheStats, LocalCache
from tiercache.cache.redis_backend import RedisStore
from tiercache.cache.tiered import RemoteStore, TieredCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "LocalCache",
    "RedisStore",
    "RemoteStore",
    "TieredCache",
]
