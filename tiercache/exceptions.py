"""
tiercache exception hierarchy.

All custom exceptions inherit from TierCacheException so callers can
catch a single base type when they want a broad safety net.  Each one
also mixes in the closest builtin so ``except KeyError`` style handlers
keep working.
"""


class TierCacheException(Exception):
    """Base exception for all tiercache errors."""


class ConfigurationError(TierCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class CacheConnectionError(TierCacheException, ConnectionError):
    """Raised when the Redis connection cannot be established or verified."""


class NotFoundError(TierCacheException, KeyError):
    """Raised when a key is absent from both cache layers."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"item not found in cache: {self.key!r}"


class RemoteError(TierCacheException):
    """Raised when a Redis call fails for any reason other than a miss."""
