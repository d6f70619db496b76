"""Tests for the CLI entry point (main.py)."""

import pytest

import main
from tiercache.cache import TieredCache
from tiercache.exceptions import CacheConnectionError


@pytest.fixture
def fake_cache(monkeypatch, fake_redis):
    cache = TieredCache(max_entries=10, ttl_seconds=60, redis_client=fake_redis)
    monkeypatch.setattr(main, "_build_cache", lambda args: cache)
    monkeypatch.setattr(main.time, "sleep", lambda seconds: None)
    return cache


class TestDemo:
    def test_demo_walkthrough(self, fake_cache, capsys) -> None:
        assert main.main(["demo", "--key", "user:1"]) == 0
        out = capsys.readouterr().out
        assert "cache MISS" in out
        assert "cache HIT" in out
        assert "after purge" in out
        assert '"size": 0' in out

    def test_demo_hit_when_already_cached(self, fake_cache, capsys) -> None:
        fake_cache.set("user:2", b"cached")
        assert main.main(["demo", "--key", "user:2"]) == 0
        out = capsys.readouterr().out
        assert "cache MISS" not in out
        assert "value: cached" in out


class TestPing:
    def test_ping_ok(self, fake_cache, capsys) -> None:
        assert main.main(["ping"]) == 0
        assert capsys.readouterr().out.strip() == "ok"

    def test_ping_unreachable(self, monkeypatch, capsys) -> None:
        def unreachable(args):
            raise CacheConnectionError("failed to connect to redis: refused")

        monkeypatch.setattr(main, "_build_cache", unreachable)
        assert main.main(["ping"]) == 1
        assert "unreachable" in capsys.readouterr().out


class TestArgs:
    def test_no_command_prints_help(self, capsys) -> None:
        assert main.main([]) == 1

    def test_fetch_from_database_returns_json_bytes(self, monkeypatch) -> None:
        monkeypatch.setattr(main.time, "sleep", lambda seconds: None)
        data = main.fetch_from_database("user:9")
        assert data.startswith(b"{")
        assert b'"id": "user:9"' in data


class TestGlobalOptions:
    def test_redis_url_goes_before_subcommand(self, monkeypatch, capsys) -> None:
        seen = []

        def build(args):
            seen.append(args.redis_url)
            return None

        monkeypatch.setattr(main, "_build_cache", build)
        assert main.main(["--redis-url", "redis://cache:6379/3", "ping"]) == 0
        assert seen == ["redis://cache:6379/3"]
