"""
Two-tier read-through cache for tiercache.

Combines the in-process :class:`~tiercache.cache.memory.LocalCache` for
hot data with a shared :class:`~tiercache.cache.redis_backend.RedisStore`
behind it.  Reads go local first, then remote, and copy remote hits back
into the local layer.  Writes and purges go to both layers, local first.

Local and remote expiry run on separate clocks: a remote hit gives the
local copy a fresh TTL but never extends the Redis key's own TTL.  The
two layers are not updated atomically, so concurrent readers can see
them disagree while a ``set`` or ``purge`` is in flight.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol, Tuple

from tiercache.cache.memory import CacheEntry, CacheStats, LocalCache
from tiercache.cache.redis_backend import RedisStore
from tiercache.config import WRITE_MODES, Settings, get_settings
from tiercache.exceptions import (
    ConfigurationError,
    NotFoundError,
    RemoteError,
)

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """What the tiered cache needs from its remote layer."""

    def get(self, key: str) -> Tuple[Optional[bytes], bool]: ...

    def set(self, key: str, value: bytes, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> bool: ...

    def ping(self) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_ttl(ttl_seconds: float, clock: Callable[[], datetime]) -> timedelta:
    """Return *ttl_seconds* as a timedelta that can be added to *clock*().

    Raises:
        ConfigurationError: For a negative, non-finite or non-numeric TTL,
            or one that would push expiry past the largest datetime.
    """
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)) \
            or not math.isfinite(ttl_seconds) or ttl_seconds < 0:
        raise ConfigurationError(
            f"ttl_seconds must be a finite number >= 0, got {ttl_seconds!r}"
        )
    try:
        ttl = timedelta(seconds=ttl_seconds)
        clock() + ttl
    except OverflowError as e:
        raise ConfigurationError(f"ttl_seconds is too large: {ttl_seconds!r}") from e
    return ttl


class TieredCache:
    """Read-through, write-through cache over a local LRU and Redis.

    Exactly one of three remote sources is used, in this order:
    ``store`` as given, ``redis_client`` wrapped in a :class:`RedisStore`,
    or a new connection to ``redis_url``.  Only the last is pinged
    during construction; injected handles are assumed live and are
    never closed by this class.

    Args:
        max_entries: Capacity of the local layer (must be positive).
        ttl_seconds: TTL applied to every write and every local
            repopulation.  ``0`` makes local entries immediately stale
            and writes Redis keys without expiry.
        redis_url: Connection URL used when no handle is injected.
        store: Pre-built remote layer, shared with other callers.
        redis_client: Pre-built redis-py client, shared with other callers.
        write_mode: ``"best_effort"`` logs and swallows remote write or
            delete failures; ``"strict"`` raises :class:`RemoteError`.
        socket_timeout: Socket timeout in seconds for a new connection.
        key_prefix: Namespace for Redis keys of a new or wrapped client.
        clock: Returns the current UTC time (testing).

    Raises:
        ConfigurationError: On a non-positive capacity, negative TTL,
            unknown write mode or unparseable URL.
        CacheConnectionError: If a new connection cannot be verified.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        redis_url: str = "redis://localhost:6379/0",
        store: Optional[RemoteStore] = None,
        redis_client: Optional[Any] = None,
        write_mode: str = "best_effort",
        socket_timeout: Optional[float] = None,
        key_prefix: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        clock = clock or _utcnow
        ttl = _validate_ttl(ttl_seconds, clock)
        if write_mode not in WRITE_MODES:
            raise ConfigurationError(
                f"write_mode must be one of {WRITE_MODES}, got {write_mode!r}"
            )

        try:
            local = LocalCache(max_entries)
        except ConfigurationError as e:
            raise ConfigurationError(f"failed to create memory cache: {e}") from e

        if store is None:
            if redis_client is not None:
                store = RedisStore(key_prefix=key_prefix, _redis_client=redis_client)
            else:
                try:
                    store = RedisStore(
                        redis_url,
                        socket_timeout=socket_timeout,
                        key_prefix=key_prefix,
                    )
                except ValueError as e:
                    raise ConfigurationError(f"invalid redis url {redis_url!r}: {e}") from e
                store.ping()

        self._local = local
        self._store = store
        self._ttl = ttl
        self._ttl_seconds = ttl_seconds
        self._write_mode = write_mode
        self._clock = clock

        logger.info(
            "Tiered cache initialised",
            extra={
                "max_entries": max_entries,
                "ttl_seconds": ttl_seconds,
                "write_mode": write_mode,
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        **overrides: Any,
    ) -> "TieredCache":
        """Build a cache from :func:`~tiercache.config.get_settings`.

        Keyword ``overrides`` are passed straight to the constructor
        (e.g. ``redis_client=`` to share an existing connection).
        """
        settings = settings or get_settings()
        kwargs = {
            "max_entries": settings.cache.max_entries,
            "ttl_seconds": settings.cache.ttl_seconds,
            "redis_url": settings.redis.url,
            "write_mode": settings.cache.write_mode,
            "socket_timeout": settings.redis.socket_timeout_seconds or None,
            "key_prefix": settings.redis.key_prefix,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @property
    def write_mode(self) -> str:
        return self._write_mode

    @property
    def local(self) -> LocalCache:
        return self._local

    @property
    def store(self) -> RemoteStore:
        return self._store

    def _entry(self, value: bytes) -> CacheEntry:
        return CacheEntry(value=value, expires_at=self._clock() + self._ttl)

    def get(self, key: str) -> bytes:
        """Return the value for *key*, consulting memory then Redis.

        A remote hit is copied into the local layer with a fresh TTL,
        which may evict the least-recently-used local entry.

        Raises:
            NotFoundError: If neither layer holds *key*.
            RemoteError: If Redis could not be queried.
        """
        now = self._clock()
        entry, ok = self._local.get(key, is_valid=lambda e: e.is_fresh(now))
        if ok:
            logger.debug("Local hit", extra={"cache_key": key})
            return entry.value

        value, found = self._store.get(key)
        if not found:
            logger.debug("Cache miss", extra={"cache_key": key})
            raise NotFoundError(key)

        self._local.add(key, self._entry(value))
        logger.debug("Remote hit, local layer repopulated", extra={"cache_key": key})
        return value

    def set(self, key: str, value: bytes) -> None:
        """Write *value* to both layers with the default TTL.

        The local write always happens and is never rolled back.

        Raises:
            RemoteError: Only in ``strict`` mode, if the Redis write fails.
        """
        self._local.add(key, self._entry(value))
        try:
            self._store.set(key, value, self._ttl_seconds)
        except RemoteError as e:
            self._remote_write_failed("set", key, e)
        else:
            logger.debug("Cache set", extra={"cache_key": key})

    def purge(self, key: str) -> None:
        """Remove *key* from both layers.  Absent keys are a no-op.

        Raises:
            RemoteError: Only in ``strict`` mode, if the Redis delete fails.
        """
        self._local.remove(key)
        try:
            self._store.delete(key)
        except RemoteError as e:
            self._remote_write_failed("purge", key, e)
        else:
            logger.debug("Cache purge", extra={"cache_key": key})

    def _remote_write_failed(self, operation: str, key: str, error: RemoteError) -> None:
        if self._write_mode == "strict":
            raise error
        logger.warning(
            "Remote %s failed; local layer updated only",
            operation,
            extra={"cache_key": key, "error": str(error)},
        )

    def stats(self) -> CacheStats:
        """Return a snapshot of the local layer."""
        return self._local.stats()

    def __len__(self) -> int:
        return len(self._local)
