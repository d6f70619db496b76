"""tiercache: an in-memory LRU cache in front of a shared Redis store."""

from tiercache.cache import CacheEntry, CacheStats, LocalCache, RedisStore, TieredCache
from tiercache.exceptions import (
    CacheConnectionError,
    ConfigurationError,
    NotFoundError,
    RemoteError,
    TierCacheException,
)

__version__ = "0.1.0"

__all__ = [
    "CacheConnectionError",
    "CacheEntry",
    "CacheStats",
    "ConfigurationError",
    "LocalCache",
    "NotFoundError",
    "RedisStore",
    "RemoteError",
    "TierCacheException",
    "TieredCache",
]
