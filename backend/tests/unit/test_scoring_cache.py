from __future__ import annotations

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from safetrail.scoring.domain.caching import ScoreCache


class _DownRedis:
    async def get(self, key: str):
        raise RedisConnectionError("redis down")

    async def set(self, key: str, value, ex: int | None = None):
        raise RedisConnectionError("redis down")

    async def delete(self, *keys: str) -> int:
        raise RedisConnectionError("redis down")


@pytest.mark.asyncio
async def test_get_or_build_runs_builder_once(score_cache) -> None:
    calls = 0

    async def _builder():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        return [{"id": "p1", "safety_score": 62.5}]

    results = await asyncio.gather(*(score_cache.get_or_build("places:all", builder=_builder) for _ in range(5)))

    assert calls == 1
    assert all(result == [{"id": "p1", "safety_score": 62.5}] for result in results)


@pytest.mark.asyncio
async def test_invalidate_place_drops_dependent_keys(score_cache, fake_redis) -> None:
    for key in ("place:p1", "place:p9", "places:all", "cities:all", "city:c1", "city:c2"):
        await score_cache.set(key, {"k": key})

    assert await score_cache.invalidate_place("p1", "c1") is True

    remaining = sorted(await fake_redis.keys("*"))
    assert remaining == ["city:c2", "place:p9"]


@pytest.mark.asyncio
async def test_clear_removes_every_score_entry(score_cache, fake_redis) -> None:
    for key in ("place:1", "place:2", "city:1", "places:all", "cities:all"):
        await score_cache.set(key, 1)
    await fake_redis.set("session:abc", "keep")

    deleted = await score_cache.clear()

    assert deleted == 5
    assert await fake_redis.keys("*") == ["session:abc"]


@pytest.mark.asyncio
async def test_redis_failures_are_best_effort() -> None:
    cache = ScoreCache(_DownRedis())  # type: ignore[arg-type]

    assert await cache.get("place:p1") is None
    assert await cache.set("place:p1", {"x": 1}) is False
    assert await cache.invalidate_place("p1", "c1") is False


@pytest.mark.asyncio
async def test_namespace_prefixes_keys(fake_redis) -> None:
    cache = ScoreCache(fake_redis, namespace="st:")
    await cache.set("place:p1", {"score": 70})

    assert await fake_redis.exists("st:place:p1") == 1
    assert await cache.get("place:p1") == {"score": 70}
