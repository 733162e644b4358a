import json
import logging

import redis.asyncio as redis

from article_comments.config import settings

logger = logging.getLogger(__name__)


def listing_key(scope: str, owner_uuid: str, offset: int, limit: int, order: list[dict]) -> str:
    """
    Build the cache key for one listing page.

    *scope* is ``"article"`` (root comments of an article) or
    ``"replies"`` (replies of a comment).  Every input that changes the
    page is part of the key, ordering included, in the order given.
    """
    order_part = ",".join(f"{item['column']}:{item['order']}" for item in order) or "-"
    return f"comments:{scope}:{owner_uuid}:{offset}:{limit}:{order_part}"


class CacheManager:
    """
    Cache-aside store for comment listing pages, backed by Redis.

    Every method tolerates a missing or failing Redis: reads report a
    miss, writes and invalidations become no-ops.  Listings then come
    straight from the database.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    async def connect(self, url: str | None = None) -> None:
        self._redis = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", url or settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, listing cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> dict | None:
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching *pattern* (SCAN, never KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    async def invalidate_comments(self, article_uuid: str) -> None:
        """
        Drop the pages a comment write can change: the article's root
        listing and every reply listing (a deleted comment also takes its
        own reply list and its replies with it).
        """
        await self.delete_pattern(f"comments:article:{article_uuid}:*")
        await self.delete_pattern("comments:replies:*")

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Shared by all requests; connected by the application lifespan.
cache = CacheManager()
