"""
Shared fixtures for tiercache tests.

Uses fakeredis so no real Redis server is required.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from tiercache.cache import RedisStore, TieredCache
from tiercache.config import reset_settings


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the settings singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_server():
    try:
        import fakeredis
    except ImportError:
        pytest.skip("fakeredis not installed")
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(fake_server):
    import fakeredis

    return fakeredis.FakeRedis(server=fake_server)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_spy(fake_redis) -> MagicMock:
    """A RedisStore over fakeredis whose calls can be counted."""
    return MagicMock(wraps=RedisStore(_redis_client=fake_redis))


@pytest.fixture
def tiered(store_spy, clock) -> TieredCache:
    return TieredCache(max_entries=10, ttl_seconds=60, store=store_spy, clock=clock)
