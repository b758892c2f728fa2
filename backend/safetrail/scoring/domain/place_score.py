"""Count-based place safety scoring."""

from __future__ import annotations

import logging
import time

from safetrail.obs import metrics
from safetrail.scoring.domain.models import (
    PlaceReportCounts,
    SafetyStatus,
    ScoreOutcome,
    clamp,
    round_one_decimal,
)
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules, StatusRules

logger = logging.getLogger(__name__)


def compute_place_safety_score(counts: PlaceReportCounts, rules: ScoringRules = DEFAULT_RULES) -> float:
    """Score a place from its report counts.

    Starts from a safe baseline, deducts up to ``max_ratio_deduction`` points for the share of
    verified reports, then a flat penalty per verified critical report. The critical penalty
    is unbounded, so enough critical reports drive the score to the floor.
    """

    place = rules.place
    score = place.base_score
    if counts.verified_count > 0:
        report_ratio = counts.verified_count / max(counts.total_count, 1)
        score -= report_ratio * place.max_ratio_deduction
    if counts.critical_count > 0:
        score -= counts.critical_count * place.critical_penalty
    return round_one_decimal(clamp(score))


def safety_status_for(score: float, rules: StatusRules = DEFAULT_RULES.status) -> SafetyStatus:
    if score >= rules.safe_min:
        return SafetyStatus.SAFE
    if score >= rules.caution_min:
        return SafetyStatus.CAUTION
    return SafetyStatus.DANGER


class PlaceSafetyScorer:
    """Fail-soft scorer: errors are logged and replaced by the neutral default."""

    name = "simple"

    def __init__(self, repository: ScoringRepository, *, rules: ScoringRules = DEFAULT_RULES) -> None:
        self._repo = repository
        self._rules = rules

    def bind(self, repository: ScoringRepository) -> "PlaceSafetyScorer":
        return PlaceSafetyScorer(repository, rules=self._rules)

    async def evaluate(self, place_id: str) -> ScoreOutcome:
        started = time.perf_counter()
        try:
            # Savepoint: a failed read must not abort an enclosing transaction.
            async with self._repo.transaction() as tx:
                counts = await tx.get_place_report_counts(
                    place_id, critical_severity=self._rules.place.critical_severity
                )
            outcome = ScoreOutcome(score=compute_place_safety_score(counts, self._rules), source=self.name)
        except Exception as exc:
            logger.exception("place_score_failed", extra={"place_id": place_id})
            outcome = ScoreOutcome.failed(exc, source=self.name, default=self._rules.place.error_default)
        metrics.SCORE_LATENCY.labels(kind="place").observe(time.perf_counter() - started)
        metrics.record_recompute("place", fallback=outcome.fallback)
        return outcome

    async def calculate(self, place_id: str) -> float:
        return (await self.evaluate(place_id)).score

    async def update(self, place_id: str) -> None:
        score = await self.calculate(place_id)
        try:
            async with self._repo.transaction() as tx:
                await tx.update_place_safety_score(place_id, score)
        except Exception:
            logger.exception("place_score_update_failed", extra={"place_id": place_id, "score": score})
