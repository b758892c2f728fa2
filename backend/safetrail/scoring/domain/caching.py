"""Redis-backed caching for place and city read paths."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from safetrail.obs import metrics

logger = logging.getLogger(__name__)

CacheBuilder = Callable[[], Awaitable[Any]]

PLACES_ALL = "places:all"
CITIES_ALL = "cities:all"


def place_key(place_id: str) -> str:
    return f"place:{place_id}"


def city_key(city_id: str) -> str:
    return f"city:{city_id}"


class ScoreCache:
    """Thin wrapper over Redis providing JSON caching with singleflight.

    Invalidation is best-effort: a Redis failure is logged and never fails the caller.
    """

    def __init__(self, redis: Redis, *, namespace: str = "", default_ttl: int = 300) -> None:
        self.redis = redis
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._locks: dict[str, asyncio.Lock] = {}

    def _key(self, suffix: str) -> str:
        return f"{self.namespace}{suffix}"

    def _lock(self, suffix: str) -> asyncio.Lock:
        if suffix not in self._locks:
            self._locks[suffix] = asyncio.Lock()
        return self._locks[suffix]

    async def get(self, suffix: str) -> Any | None:
        try:
            raw = await self.redis.get(self._key(suffix))
        except RedisError:
            logger.warning("score_cache_get_failed", extra={"key": suffix}, exc_info=True)
            return None
        if not raw:
            return None
        try:
            if isinstance(raw, bytes):
                decoded = raw.decode("utf-8")
            else:
                decoded = str(raw)
            return json.loads(decoded)
        except json.JSONDecodeError:
            return None

    async def set(self, suffix: str, value: Any, *, ttl: int | None = None) -> bool:
        payload = json.dumps(value, default=str)
        try:
            await self.redis.set(self._key(suffix), payload, ex=ttl or self.default_ttl)
        except RedisError:
            logger.warning("score_cache_set_failed", extra={"key": suffix}, exc_info=True)
            return False
        return True

    async def get_or_build(self, suffix: str, *, builder: CacheBuilder, ttl: int | None = None) -> Any:
        cached = await self.get(suffix)
        if cached is not None:
            return cached
        lock = self._lock(suffix)
        async with lock:
            cached = await self.get(suffix)
            if cached is not None:
                return cached
            value = await builder()
            await self.set(suffix, value, ttl=ttl)
            return value

    async def delete(self, *suffixes: str) -> bool:
        if not suffixes:
            return True
        keys = [self._key(suffix) for suffix in suffixes]
        try:
            await self.redis.delete(*keys)
        except RedisError:
            logger.warning("score_cache_delete_failed", extra={"keys": keys}, exc_info=True)
            metrics.record_invalidation(False, len(keys))
            return False
        metrics.record_invalidation(True, len(keys))
        return True

    async def invalidate_place(self, place_id: str, city_id: str | None = None) -> bool:
        """Drop every read path that embeds the place's or its city's score."""

        suffixes = [place_key(place_id), PLACES_ALL, CITIES_ALL]
        if city_id is not None:
            suffixes.append(city_key(city_id))
        return await self.delete(*suffixes)

    async def clear(self) -> int:
        """Remove every cached place and city entry; returns the number of keys deleted."""

        deleted = 0
        try:
            for pattern in ("place:*", "city:*"):
                batch: list[str] = []
                async for key in self.redis.scan_iter(match=self._key(pattern)):
                    batch.append(key)
                if batch:
                    deleted += int(await self.redis.delete(*batch))
            deleted += int(await self.redis.delete(self._key(PLACES_ALL), self._key(CITIES_ALL)))
        except RedisError:
            logger.warning("score_cache_clear_failed", exc_info=True)
            metrics.record_invalidation(False)
            return deleted
        metrics.record_invalidation(True, deleted)
        return deleted
