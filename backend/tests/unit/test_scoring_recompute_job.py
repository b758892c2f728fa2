from __future__ import annotations

import pytest

from safetrail.container import build_container
from safetrail.scoring.domain.models import ReportStatus
from safetrail.scoring.jobs import recompute_scores


@pytest.mark.asyncio
async def test_recompute_updates_places_before_cities(repo, fake_redis) -> None:
    repo.add_city("c1")
    repo.add_city("c2")
    repo.add_place("p1", "c1")
    repo.add_place("p2", "c1")
    repo.add_report("p1", severity=3, status=ReportStatus.VERIFIED)
    await fake_redis.set("place:p1", "{}")
    await fake_redis.set("cities:all", "[]")
    container = build_container(repo, redis=fake_redis)

    summary = await recompute_scores.run(container)

    assert summary.places_updated == 2
    assert summary.places_fallback == 0
    assert summary.cities_updated == 2
    assert summary.cache_keys_cleared == 2
    assert repo.state.places["p1"].safety_score == 45.0
    assert repo.state.places["p2"].safety_score == 85.0
    assert repo.state.cities["c1"].safety_score == 65.0
    assert repo.state.cities["c1"].reports_count == 1
    assert repo.state.cities["c2"].safety_score == 50.0


@pytest.mark.asyncio
async def test_recompute_can_be_limited_to_cities(repo) -> None:
    repo.add_city("c1")
    repo.add_city("c2")
    repo.add_place("p1", "c1")
    repo.add_place("p2", "c2", safety_score=12.0)
    container = build_container(repo, strategy_name="weighted")

    summary = await recompute_scores.run(container, city_ids=["c1"])

    assert summary.places_updated == 1
    assert summary.cities_updated == 1
    assert repo.state.places["p1"].safety_score == 50.0
    assert repo.state.places["p2"].safety_score == 12.0


@pytest.mark.asyncio
async def test_recompute_reports_fallbacks(repo, monkeypatch) -> None:
    repo.add_city("c1")
    repo.add_place("p1", "c1")

    async def _boom(place_id: str, *, critical_severity: int):
        raise RuntimeError("boom")

    monkeypatch.setattr(repo, "get_place_report_counts", _boom)
    container = build_container(repo)

    summary = await recompute_scores.run(container)

    assert summary.places_fallback == 1
    assert summary.fallback_place_ids == ["p1"]
