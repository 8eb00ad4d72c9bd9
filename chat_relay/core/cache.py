# chat_relay/core/cache.py
"""Redis caching for immutable lookups."""
import logging
from typing import Optional
import redis.asyncio as redis

logger = logging.getLogger(__name__)

class CacheManager:
    """Best-effort string cache; every failure degrades to a miss."""

    def __init__(self, redis_url: str, default_ttl: int = 3600):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        if not self.redis:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str) -> Optional[str]:
        """Get value from cache."""
        if not self.redis:
            await self.connect()

        try:
            return await self.redis.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """Set value in cache."""
        if not self.redis:
            await self.connect()

        try:
            return bool(await self.redis.set(key, value, ex=expire or self.default_ttl))
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.redis:
            await self.connect()

        try:
            return bool(await self.redis.delete(key))
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False
