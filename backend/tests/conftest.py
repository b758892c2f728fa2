import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from safetrail.scoring.domain.caching import ScoreCache
from safetrail.scoring.domain.repository import InMemoryScoringRepository

FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
	return FIXED_NOW


@pytest.fixture
def repo() -> InMemoryScoringRepository:
	return InMemoryScoringRepository(clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def fake_redis():
	client = FakeRedis(decode_responses=True)
	try:
		yield client
	finally:
		await client.flushall()
		await client.aclose()


@pytest_asyncio.fixture
async def score_cache(fake_redis) -> ScoreCache:
	return ScoreCache(fake_redis)
