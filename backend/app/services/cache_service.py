"""Redis caching for category tree reads.

Tree and listing responses are cached as JSON strings under ``categories:*``
keys; any category mutation drops the whole prefix. Redis problems are
logged and treated as cache misses.
"""

from typing import Optional
from uuid import UUID

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.config import settings

logger = structlog.get_logger(__name__)

CATEGORY_CACHE_PREFIX = "categories"


class CacheService:
    """Async Redis cache with TTL and prefix invalidation."""

    def __init__(self, redis_url: str):
        """Initialize cache service.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Return the cached string for ``key``, or None on miss or error."""
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e))
            return None

        self.logger.debug("cache_hit" if value else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e))
            return False

        self.logger.debug("cache_set", key=key, ttl=ttl)
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Returns:
            Number of keys deleted, 0 on error
        """
        try:
            redis = await self._get_redis()
            keys = [key async for key in redis.scan_iter(match=pattern, count=100)]
            deleted = await redis.delete(*keys) if keys else 0
        except RedisError as e:
            self.logger.error("cache_pattern_delete_failed", pattern=pattern, error=str(e))
            return 0

        self.logger.info("cache_pattern_delete", pattern=pattern, keys_deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        """Ping Redis."""
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except RedisError as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the Redis connection on shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


_cache_instance: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the process-wide cache service."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = CacheService(settings.REDIS_URL)
        logger.info("cache_service_initialized", redis_url=settings.REDIS_URL)

    return _cache_instance


async def get_cache() -> CacheService:
    """FastAPI dependency for the cache service.

    Usage:
        @router.get("/tree")
        async def tree(cache: CacheService = Depends(get_cache)):
            ...
    """
    return get_cache_service()


async def invalidate_categories_cache(cache: CacheService) -> int:
    """Drop every cached category response after a mutation."""
    deleted = await cache.delete_pattern(f"{CATEGORY_CACHE_PREFIX}:*")
    logger.info("categories_cache_invalidated", keys_deleted=deleted)
    return deleted


def cache_key_for_tree(
    parent_id: Optional[UUID] = None,
    max_depth: Optional[int] = None,
    include_inactive: bool = False,
) -> str:
    """Cache key for a tree read.

    Returns:
        e.g. "categories:tree:root:d*:active"
    """
    parts = [
        CATEGORY_CACHE_PREFIX,
        "tree",
        str(parent_id) if parent_id else "root",
        f"d{max_depth}" if max_depth is not None else "d*",
        "all" if include_inactive else "active",
    ]
    return ":".join(parts)
