"""Batch job that recomputes every place and city score from live report data."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from safetrail.container import ScoringContainer
from safetrail.scoring.domain.strategies import apply_place_score

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecomputeSummary:
    places_updated: int = 0
    places_fallback: int = 0
    cities_updated: int = 0
    cache_keys_cleared: int = 0
    fallback_place_ids: list[str] = field(default_factory=list)


async def run(container: ScoringContainer, *, city_ids: Sequence[str] | None = None) -> RecomputeSummary:
    """Recompute all places first, then roll their cities up."""

    repo = container.repository
    summary = RecomputeSummary()

    for place_id in await repo.list_place_ids(city_ids):
        outcome = await apply_place_score(container.strategy, repo, place_id)
        summary.places_updated += 1
        if outcome.fallback:
            summary.places_fallback += 1
            summary.fallback_place_ids.append(place_id)

    targets = list(city_ids) if city_ids is not None else await repo.list_city_ids()
    for city_id in targets:
        await container.city_rollup.update(city_id)
        await container.city_rollup.refresh_counts(city_id)
        summary.cities_updated += 1

    if container.cache is not None:
        summary.cache_keys_cleared = await container.cache.clear()

    logger.info(
        "recompute_scores_finished",
        extra={
            "places_updated": summary.places_updated,
            "places_fallback": summary.places_fallback,
            "cities_updated": summary.cities_updated,
            "strategy": container.strategy.name,
        },
    )
    return summary
