"""
Redis-backed remote layer for tiercache.

Exposes the four calls the tiered cache relies on: ``get``, ``set``,
``delete`` and ``ping``.  Values are stored as raw bytes with no
envelope; Redis handles expiry.  Keys are optionally namespaced as
``{key_prefix}:{key}``.
"""

import logging
from typing import Any, Optional, Tuple

import redis

from tiercache.exceptions import CacheConnectionError, RemoteError

logger = logging.getLogger(__name__)


def ttl_to_millis(ttl_seconds: float) -> int:
    """Convert a TTL to a Redis ``PX`` value.

    Returns 0 for a zero TTL (no expiry); any positive TTL maps to at
    least one millisecond.
    """
    if ttl_seconds <= 0:
        return 0
    return max(1, int(round(ttl_seconds * 1000)))


class RedisStore:
    """Remote key-value layer backed by a redis-py client.

    The client is pooled and safe to share across threads and across
    several :class:`~tiercache.cache.tiered.TieredCache` instances.  An
    injected client is used as-is and never closed here.

    Args:
        redis_url: Redis connection URL (e.g. redis://localhost:6379/0).
            Ignored when ``_redis_client`` is given.
        socket_timeout: Per-call socket timeout in seconds, ``None`` to
            block indefinitely.
        key_prefix: Prefix for all keys (default none).
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        socket_timeout: Optional[float] = None,
        key_prefix: str = "",
        _redis_client: Optional[Any] = None,
    ) -> None:
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.from_url(
                redis_url,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self._key_prefix = key_prefix.rstrip(":")

    @property
    def client(self) -> Any:
        return self._client

    def _key(self, key: str) -> str:
        """Return full Redis key for a cache key."""
        if not self._key_prefix:
            return key
        return f"{self._key_prefix}:{key}"

    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        """Fetch *key*.

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` if Redis has no
            such key.

        Raises:
            RemoteError: On any other Redis failure.
        """
        try:
            data = self._client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(
                "Redis get failed",
                extra={"cache_key": key, "error": str(e)},
            )
            raise RemoteError(f"redis GET error: {e}") from e

        if data is None:
            return None, False
        if isinstance(data, str):
            # Client built with decode_responses=True
            data = data.encode("utf-8")
        return data, True

    def set(self, key: str, value: bytes, ttl_seconds: float) -> None:
        """Store *value* under *key*, expiring after *ttl_seconds* (0 = never).

        Raises:
            RemoteError: If the write fails.
        """
        px = ttl_to_millis(ttl_seconds)
        try:
            if px:
                self._client.set(self._key(key), value, px=px)
            else:
                self._client.set(self._key(key), value)
        except redis.RedisError as e:
            logger.warning(
                "Redis set failed",
                extra={"cache_key": key, "error": str(e)},
            )
            raise RemoteError(f"redis SET error: {e}") from e

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if Redis deleted something.

        Raises:
            RemoteError: If the delete fails.
        """
        try:
            deleted = self._client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(
                "Redis delete failed",
                extra={"cache_key": key, "error": str(e)},
            )
            raise RemoteError(f"redis DEL error: {e}") from e
        return bool(deleted)

    def ping(self) -> None:
        """Check the server is reachable.

        Raises:
            CacheConnectionError: If the server cannot be reached or does
                not answer the ping.
        """
        try:
            ok = self._client.ping()
        except redis.RedisError as e:
            raise CacheConnectionError(f"failed to connect to redis: {e}") from e
        if not ok:
            raise CacheConnectionError("failed to connect to redis: ping was not acknowledged")
