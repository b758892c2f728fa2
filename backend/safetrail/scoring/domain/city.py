"""City safety roll-up over its places."""

from __future__ import annotations

import logging

from safetrail.obs import metrics
from safetrail.scoring.domain.models import ScoreOutcome, clamp, round_one_decimal
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules

logger = logging.getLogger(__name__)


class CityRollup:
    """Sets a city's score to the mean of its places' current scores.

    Must run after the place scores it reads have been written.
    """

    name = "city"

    def __init__(self, repository: ScoringRepository, *, rules: ScoringRules = DEFAULT_RULES) -> None:
        self._repo = repository
        self._rules = rules

    def bind(self, repository: ScoringRepository) -> "CityRollup":
        return CityRollup(repository, rules=self._rules)

    async def city_for_place(self, place_id: str) -> str | None:
        try:
            async with self._repo.transaction() as tx:
                return await tx.get_place_city_id(place_id)
        except Exception:
            logger.exception("city_lookup_failed", extra={"place_id": place_id})
            metrics.record_recompute("city", fallback=True)
            return None

    async def evaluate(self, city_id: str) -> ScoreOutcome:
        empty = self._rules.city.empty_score
        try:
            async with self._repo.transaction() as tx:
                average = await tx.average_place_score(city_id)
        except Exception as exc:
            logger.exception("city_score_failed", extra={"city_id": city_id})
            metrics.record_recompute("city", fallback=True)
            return ScoreOutcome.failed(exc, source=self.name, default=empty)
        score = empty if average is None else float(average)
        metrics.record_recompute("city", fallback=False)
        return ScoreOutcome(score=round_one_decimal(clamp(score)), source=self.name)

    async def update(self, city_id: str) -> None:
        outcome = await self.evaluate(city_id)
        if outcome.fallback:
            # A failed read leaves the stored score untouched.
            return
        try:
            async with self._repo.transaction() as tx:
                await tx.update_city_safety_score(city_id, outcome.score)
        except Exception:
            logger.exception("city_score_update_failed", extra={"city_id": city_id, "score": outcome.score})

    async def refresh_counts(self, city_id: str) -> None:
        try:
            async with self._repo.transaction() as tx:
                await tx.refresh_city_counts(city_id)
        except Exception:
            logger.exception("city_counts_refresh_failed", extra={"city_id": city_id})
