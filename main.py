"""
CLI entry point for tiercache.

Usage:
    python main.py [--redis-url URL] [--log-level LEVEL] demo [--key user:profile:42] [--ttl 2]
    python main.py [--redis-url redis://localhost:6379/0] ping
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone

from tiercache.cache import TieredCache
from tiercache.config import get_settings
from tiercache.exceptions import (
    CacheConnectionError,
    ConfigurationError,
    NotFoundError,
    RemoteError,
)

logger = logging.getLogger("tiercache.cli")


def fetch_from_database(key: str) -> bytes:
    """Stand-in for a slow primary data source."""
    time.sleep(0.05)
    return json.dumps({
        "id": key,
        "name": "Jean Cache",
        "retrieved_at": datetime.now(timezone.utc).isoformat(),
    }).encode("utf-8")


def _build_cache(args) -> TieredCache:
    overrides = {}
    if getattr(args, "redis_url", None):
        overrides["redis_url"] = args.redis_url
    if getattr(args, "ttl", None) is not None:
        overrides["ttl_seconds"] = args.ttl
    return TieredCache.from_settings(get_settings(), **overrides)


def cmd_demo(args) -> int:
    """Walk through a cache-aside read, a cached read, a purge and stats."""
    cache = _build_cache(args)
    key = args.key

    print(f"[client] getting {key!r} ...")
    try:
        data = cache.get(key)
        print("  -> cache HIT")
    except NotFoundError:
        print("  -> cache MISS, fetching from primary source")
        data = fetch_from_database(key)
        cache.set(key, data)
        print("  -> stored in cache")
    print(f"  -> value: {data.decode('utf-8', errors='replace')}")

    print(f"\n[client] getting {key!r} again ...")
    start = time.perf_counter()
    data = cache.get(key)
    elapsed_ms = (time.perf_counter() - start) * 1000
    print(f"  -> cache HIT in {elapsed_ms:.3f}ms")

    print(f"\n[client] purging {key!r} ...")
    cache.purge(key)
    try:
        cache.get(key)
        print("  -> still present (another writer repopulated it)")
    except NotFoundError as e:
        print(f"  -> after purge: {e}")

    stats = cache.stats()
    print("\n--- Cache Stats ---")
    print(json.dumps(stats.model_dump(), indent=2))
    return 0


def cmd_ping(args) -> int:
    """Construct a cache from settings; exit non-zero if Redis is unreachable."""
    try:
        _build_cache(args)
    except CacheConnectionError as e:
        print(f"unreachable: {e}")
        return 1
    print("ok")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="tiercache - in-memory LRU in front of Redis"
    )
    parser.add_argument("--redis-url", default=None, help="Override redis.url")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # demo
    p_demo = subparsers.add_parser("demo", help="Run the cache-aside walkthrough")
    p_demo.add_argument("--key", default="user:profile:42")
    p_demo.add_argument("--ttl", type=float, default=None, help="TTL in seconds")

    # ping
    subparsers.add_parser("ping", help="Check the Redis connection")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=(args.log_level or settings.logging.level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "demo": cmd_demo,
        "ping": cmd_ping,
    }
    try:
        return commands[args.command](args)
    except (ConfigurationError, CacheConnectionError, RemoteError) as e:
        logger.error("Command failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
