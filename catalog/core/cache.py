"""Redis caching layer."""

import hashlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from catalog.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class CacheService:
    """Async Redis cache service. Failures are logged and treated as misses."""

    def __init__(self):
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()

    async def get(self, key: str) -> Any | None:
        """Get value from cache."""
        try:
            client = await self._get_redis()
            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """Set value in cache with optional TTL."""
        try:
            client = await self._get_redis()
            serialized = json.dumps(value, default=str)
            if ttl:
                await client.setex(key, ttl, serialized)
            else:
                await client.set(key, serialized)
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    # Key patterns for different data types
    @staticmethod
    def params_digest(params: dict) -> str:
        """Stable digest of request parameters (order-independent)."""
        encoded = json.dumps(params, sort_keys=True, default=str)
        return hashlib.sha256(encoded.encode()).hexdigest()[:32]

    @classmethod
    def products_key(cls, params: dict) -> str:
        return f"products:{cls.params_digest(params)}"

    @classmethod
    def actresses_key(cls, params: dict) -> str:
        return f"actresses:{cls.params_digest(params)}"

    @staticmethod
    def autocomplete_key(query: str) -> str:
        return f"autocomplete:{query.lower()}"

    @staticmethod
    def relations_key(performer_id: int, hops: int, limit: int) -> str:
        # v5: edges weighted by distinct shared products
        return f"relations:v5:{performer_id}:{hops}:{limit}"


# Singleton cache instance
_cache: CacheService | None = None


def get_cache() -> CacheService:
    """Get the singleton cache service."""
    global _cache
    if _cache is None:
        _cache = CacheService()
    return _cache
