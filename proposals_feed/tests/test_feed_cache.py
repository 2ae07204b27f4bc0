"""Unit tests for the feed TTL cache."""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from ..services.feed_cache import FeedCache


class TestMemoryCache:
    """Test the in-process store."""

    def test_set_then_get(self):
        """Test that a stored value is returned while fresh."""
        cache = FeedCache(ttl_minutes=5)

        async def run():
            await cache.set("feed:a", {"events": []})
            return await cache.get("feed:a")

        assert asyncio.run(run()) == {"events": []}

    def test_miss(self):
        """Test that unknown keys miss."""
        assert asyncio.run(FeedCache().get("feed:missing")) is None

    def test_expired_entry_is_dropped(self):
        """Test that a zero TTL entry is never served."""
        cache = FeedCache(ttl_minutes=5)

        async def run():
            await cache.set("feed:a", "value", ttl_minutes=0)
            return await cache.get("feed:a")

        assert asyncio.run(run()) is None
        assert cache._memory_cache == {}

    def test_invalidate(self):
        """Test that invalidated keys miss."""
        cache = FeedCache()

        async def run():
            await cache.set("feed:a", "value")
            await cache.invalidate("feed:a")
            return await cache.get("feed:a")

        assert asyncio.run(run()) is None


class TestRedisCache:
    """Test the optional redis-like backend."""

    def test_sync_client_round_trip(self):
        """Test that values go through the client as serialized text."""
        client = MagicMock()
        client.get.return_value = json.dumps({"n": 1}).encode("utf-8")
        cache = FeedCache(ttl_minutes=2, redis_client=client, serialize=json.dumps, deserialize=json.loads)

        async def run():
            stored = await cache.set("feed:a", {"n": 1})
            return stored, await cache.get("feed:a")

        stored, value = asyncio.run(run())

        assert stored is True
        assert value == {"n": 1}
        client.setex.assert_called_once_with("feed:a", 120, '{"n": 1}')

    def test_async_client(self):
        """Test that coroutine clients are awaited."""
        client = AsyncMock()
        client.get.return_value = '"cached"'
        cache = FeedCache(redis_client=client, serialize=json.dumps, deserialize=json.loads)

        assert asyncio.run(cache.get("feed:a")) == "cached"
        client.get.assert_awaited_once_with("feed:a")

    def test_client_errors_are_misses(self):
        """Test that backend failures behave like cache misses."""
        client = MagicMock()
        client.get.side_effect = ConnectionError("redis down")
        client.setex.side_effect = ConnectionError("redis down")
        cache = FeedCache(redis_client=client, serialize=json.dumps, deserialize=json.loads)

        assert asyncio.run(cache.get("feed:a")) is None
        assert asyncio.run(cache.set("feed:a", 1)) is False
