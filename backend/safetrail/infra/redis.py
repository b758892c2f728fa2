"""Redis connection management.

Clients are created explicitly and handed to whoever needs them, so tests can pass a
FakeRedis instance without patching module state.
"""

from __future__ import annotations

import redis.asyncio as redis

from safetrail.settings import Settings


def create_redis(config: Settings) -> redis.Redis:
	return redis.from_url(config.redis_url, decode_responses=True)


async def close_redis(client: redis.Redis | None) -> None:
	if client is not None:
		await client.aclose()
