"""
Tests for the Redis remote layer.

Uses fakeredis so no real Redis server is required.
"""

import pytest

from tiercache.cache.redis_backend import RedisStore, ttl_to_millis
from tiercache.exceptions import CacheConnectionError, RemoteError


@pytest.fixture
def store(fake_redis) -> RedisStore:
    return RedisStore(_redis_client=fake_redis)


class TestTtlToMillis:
    def test_zero_means_no_expiry(self) -> None:
        assert ttl_to_millis(0) == 0

    def test_whole_seconds(self) -> None:
        assert ttl_to_millis(2) == 2000

    def test_fractional_seconds(self) -> None:
        assert ttl_to_millis(0.25) == 250

    def test_tiny_positive_rounds_up_to_one(self) -> None:
        assert ttl_to_millis(0.0001) == 1


class TestRedisStoreWithFakeredis:
    """Tests for RedisStore using an injected FakeRedis."""

    def test_set_and_get(self, store: RedisStore) -> None:
        store.set("k", b"payload", 60)
        assert store.get("k") == (b"payload", True)

    def test_get_miss(self, store: RedisStore) -> None:
        assert store.get("nonexistent") == (None, False)

    def test_set_applies_ttl(self, store: RedisStore, fake_redis) -> None:
        store.set("k", b"v", 60)
        assert 0 < fake_redis.pttl("k") <= 60_000

    def test_zero_ttl_sets_without_expiry(self, store: RedisStore, fake_redis) -> None:
        store.set("k", b"v", 0)
        assert fake_redis.pttl("k") == -1

    def test_binary_values_round_trip(self, store: RedisStore) -> None:
        blob = bytes(range(256))
        store.set("bin", blob, 60)
        assert store.get("bin") == (blob, True)

    def test_delete_existing(self, store: RedisStore) -> None:
        store.set("k", b"v", 60)
        assert store.delete("k") is True
        assert store.get("k") == (None, False)

    def test_delete_nonexistent(self, store: RedisStore) -> None:
        assert store.delete("nope") is False

    def test_ping(self, store: RedisStore) -> None:
        store.ping()

    def test_key_prefix(self, fake_redis) -> None:
        store = RedisStore(key_prefix="app:", _redis_client=fake_redis)
        store.set("k", b"v", 60)
        assert fake_redis.get("app:k") == b"v"
        assert fake_redis.get("k") is None
        assert store.get("k") == (b"v", True)

    def test_decoded_client_still_returns_bytes(self, fake_server) -> None:
        import fakeredis

        client = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
        store = RedisStore(_redis_client=client)
        store.set("k", "héllo".encode("utf-8"), 60)
        assert store.get("k") == ("héllo".encode("utf-8"), True)


class TestRedisStoreFailures:
    """A disconnected server must surface as errors, never as a miss."""

    @pytest.fixture
    def down(self, fake_server, store: RedisStore) -> RedisStore:
        fake_server.connected = False
        return store

    def test_get_raises_remote_error(self, down: RedisStore) -> None:
        with pytest.raises(RemoteError, match="redis GET error"):
            down.get("k")

    def test_set_raises_remote_error(self, down: RedisStore) -> None:
        with pytest.raises(RemoteError, match="redis SET error"):
            down.set("k", b"v", 60)

    def test_delete_raises_remote_error(self, down: RedisStore) -> None:
        with pytest.raises(RemoteError, match="redis DEL error"):
            down.delete("k")

    def test_ping_raises_connection_error(self, down: RedisStore) -> None:
        with pytest.raises(CacheConnectionError, match="failed to connect"):
            down.ping()

    def test_remote_error_chains_cause(self, down: RedisStore) -> None:
        import redis

        with pytest.raises(RemoteError) as info:
            down.get("k")
        assert isinstance(info.value.__cause__, redis.RedisError)
