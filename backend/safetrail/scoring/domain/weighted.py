"""Trust-weighted place safety aggregation."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from safetrail.obs import metrics
from safetrail.scoring.domain.models import ScoreOutcome, WeightedReport, round_one_decimal
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules
from safetrail.scoring.domain.trust import get_trust_weight

logger = logging.getLogger(__name__)


def _effective_trust(report: WeightedReport, default: float) -> float:
    if report.user_trust_score is not None:
        return float(report.user_trust_score)
    if report.reporter_trust_score is not None:
        return float(report.reporter_trust_score)
    return default


def compute_weighted_safety_score(reports: Iterable[WeightedReport], rules: ScoringRules = DEFAULT_RULES) -> float:
    """Weighted mean of per-report safety, each report weighted by its author's trust."""

    weighted = rules.weighted
    total_weighted_score = 0.0
    total_weight = 0.0
    for report in reports:
        weight = get_trust_weight(_effective_trust(report, weighted.default_trust), rules.trust)
        severity = report.severity or weighted.default_severity
        report_score = max(0.0, 100.0 - severity * weighted.severity_impact)
        total_weighted_score += report_score * weight
        total_weight += weight
    if total_weight <= 0:
        return weighted.empty_score
    return round_one_decimal(total_weighted_score / total_weight)


class WeightedSafetyAggregator:
    """Fail-soft alternative to the count-based scorer."""

    name = "weighted"

    def __init__(self, repository: ScoringRepository, *, rules: ScoringRules = DEFAULT_RULES) -> None:
        self._repo = repository
        self._rules = rules

    def bind(self, repository: ScoringRepository) -> "WeightedSafetyAggregator":
        return WeightedSafetyAggregator(repository, rules=self._rules)

    async def evaluate(self, place_id: str) -> ScoreOutcome:
        started = time.perf_counter()
        try:
            async with self._repo.transaction() as tx:
                reports = await tx.list_weighted_reports(place_id)
            outcome = ScoreOutcome(score=compute_weighted_safety_score(reports, self._rules), source=self.name)
        except Exception as exc:
            logger.exception("weighted_score_failed", extra={"place_id": place_id})
            outcome = ScoreOutcome.failed(exc, source=self.name, default=self._rules.weighted.error_default)
        metrics.SCORE_LATENCY.labels(kind="weighted").observe(time.perf_counter() - started)
        metrics.record_recompute("weighted", fallback=outcome.fallback)
        return outcome

    async def calculate(self, place_id: str) -> float:
        return (await self.evaluate(place_id)).score
