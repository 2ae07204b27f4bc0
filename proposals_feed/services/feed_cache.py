# Minimal TTL cache for assembled feeds
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class FeedCache:
    """Simple key -> value TTL cache.

    Values live in process memory. When a redis-like client is injected
    (``get``/``setex``/``delete``, sync or async), values are stored there
    as JSON produced by ``serialize`` and rebuilt with ``deserialize``.
    Cache failures are logged and behave like misses.
    """

    def __init__(
        self,
        ttl_minutes: int = 5,
        redis_client=None,
        serialize: Optional[Callable[[Any], str]] = None,
        deserialize: Optional[Callable[[str], Any]] = None,
    ):
        self.ttl_minutes = ttl_minutes
        self.redis_client = redis_client
        self._serialize = serialize
        self._deserialize = deserialize
        # In-memory fallback cache
        self._memory_cache: Dict[str, Dict[str, Any]] = {}
        self._cache_lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value if it exists and is fresh"""
        try:
            if self.redis_client and self._deserialize:
                cached = await self._call(self.redis_client.get, key)
                if cached:
                    logger.info(f"Cache HIT (redis) for {key}")
                    if isinstance(cached, bytes):
                        cached = cached.decode("utf-8")
                    return self._deserialize(cached)

            async with self._cache_lock:
                entry = self._memory_cache.get(key)
                if entry is not None:
                    if self._is_fresh(entry):
                        logger.info(f"Cache HIT (memory) for {key}")
                        return entry["value"]
                    del self._memory_cache[key]
                    logger.info(f"Cache EXPIRED (memory) for {key}")

            logger.info(f"Cache MISS for {key}")
            return None

        except Exception as e:
            logger.error(f"Error retrieving from cache {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_minutes: Optional[int] = None) -> bool:
        """Store a value with TTL"""
        ttl = self.ttl_minutes if ttl_minutes is None else ttl_minutes
        try:
            if self.redis_client and self._serialize:
                await self._call(self.redis_client.setex, key, int(ttl * 60), self._serialize(value))
                logger.info(f"Stored in Redis cache: {key}")
                return True

            async with self._cache_lock:
                self._memory_cache[key] = {
                    "value": value,
                    "expires_at": datetime.now(timezone.utc) + timedelta(minutes=ttl),
                }
                logger.info(f"Stored in memory cache: {key}")
                self._cleanup_expired()
            return True

        except Exception as e:
            logger.error(f"Error storing to cache {key}: {e}")
            return False

    async def invalidate(self, key: str) -> bool:
        """Manually invalidate a cached value"""
        try:
            if self.redis_client:
                await self._call(self.redis_client.delete, key)

            async with self._cache_lock:
                self._memory_cache.pop(key, None)

            logger.info(f"Invalidated cache: {key}")
            return True

        except Exception as e:
            logger.error(f"Error invalidating cache {key}: {e}")
            return False

    def _is_fresh(self, entry: Dict[str, Any]) -> bool:
        return datetime.now(timezone.utc) < entry["expires_at"]

    def _cleanup_expired(self) -> None:
        """Remove expired entries from memory cache; caller holds the lock"""
        expired = [key for key, entry in self._memory_cache.items() if not self._is_fresh(entry)]
        for key in expired:
            del self._memory_cache[key]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired cache entries")

    @staticmethod
    async def _call(method, *args):
        result = method(*args)
        if asyncio.iscoroutine(result):
            result = await result
        return result
