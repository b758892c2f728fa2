"""Named place-scoring strategies.

The count-based and trust-weighted scorers produce different numbers for the same place.
Both are kept, and callers pick one by name.
"""

from __future__ import annotations

import logging
from typing import Protocol

from safetrail.scoring.domain.models import ScoreOutcome
from safetrail.scoring.domain.place_score import PlaceSafetyScorer
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules
from safetrail.scoring.domain.weighted import WeightedSafetyAggregator

logger = logging.getLogger(__name__)


class ScoringStrategy(Protocol):
    name: str

    def bind(self, repository: ScoringRepository) -> "ScoringStrategy":
        ...

    async def evaluate(self, place_id: str) -> ScoreOutcome:
        ...


STRATEGIES: dict[str, type] = {
    PlaceSafetyScorer.name: PlaceSafetyScorer,
    WeightedSafetyAggregator.name: WeightedSafetyAggregator,
}


def resolve_strategy(name: str, repository: ScoringRepository, *, rules: ScoringRules = DEFAULT_RULES) -> ScoringStrategy:
    try:
        factory = STRATEGIES[name]
    except KeyError:
        raise ValueError(f"unknown scoring strategy: {name!r}") from None
    return factory(repository, rules=rules)


async def apply_place_score(strategy: ScoringStrategy, repository: ScoringRepository, place_id: str) -> ScoreOutcome:
    """Evaluate ``place_id`` with ``strategy`` and persist the result (fail-soft)."""

    outcome = await strategy.evaluate(place_id)
    try:
        async with repository.transaction() as tx:
            await tx.update_place_safety_score(place_id, outcome.score)
    except Exception:
        logger.exception(
            "place_score_update_failed",
            extra={"place_id": place_id, "score": outcome.score, "strategy": strategy.name},
        )
    return outcome
