"""Trust score utilities for report authors."""

from __future__ import annotations

import logging
import time

from safetrail.obs import metrics
from safetrail.scoring.domain.errors import UserNotFoundError
from safetrail.scoring.domain.models import TrustFactors, clamp, round_one_decimal
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules, TrustRules

logger = logging.getLogger(__name__)


def _accuracy_adjustment(factors: TrustFactors, rules: TrustRules) -> float:
    if factors.total_reports <= 0:
        return 0.0
    accuracy_rate = factors.verified_reports / factors.total_reports
    if accuracy_rate >= rules.high_accuracy_rate:
        return rules.high_accuracy_bonus
    if accuracy_rate >= rules.medium_accuracy_rate:
        return rules.medium_accuracy_bonus
    if accuracy_rate < rules.low_accuracy_rate:
        return -rules.low_accuracy_penalty
    # Between the low and medium thresholds no adjustment applies.
    return 0.0


def calculate_trust_score(factors: TrustFactors, rules: ScoringRules = DEFAULT_RULES) -> float:
    """Additive point model around a neutral base, bounded to [0, 100]."""

    trust = rules.trust
    score = trust.base_score
    score += factors.verified_reports * trust.verified_report_bonus
    score -= factors.rejected_reports * trust.rejected_report_penalty
    score += factors.reports_with_photos * trust.photo_bonus
    score += _accuracy_adjustment(factors, trust)
    account_age_months = factors.account_age_days / trust.days_per_month
    score += min(account_age_months * trust.account_age_bonus_per_month, trust.max_account_age_bonus)
    return clamp(round_one_decimal(score))


def get_trust_weight(trust_score: float, rules: TrustRules = DEFAULT_RULES.trust) -> float:
    """Map a trust score to the multiplier applied to that user's reports."""

    for minimum, weight in rules.weight_bands:
        if trust_score >= minimum:
            return weight
    return rules.floor_weight


class TrustScorer:
    """Recomputes user trust from their full report history.

    Unlike the safety scorers this is fail-loud: a missing user or a store error propagates
    to the caller so a moderation action never commits with a silently wrong trust score.
    """

    def __init__(self, repository: ScoringRepository, *, rules: ScoringRules = DEFAULT_RULES) -> None:
        self._repo = repository
        self._rules = rules

    def bind(self, repository: ScoringRepository) -> "TrustScorer":
        return TrustScorer(repository, rules=self._rules)

    async def update_user_trust_score(self, user_id: str) -> float:
        started = time.perf_counter()
        try:
            stats = await self._repo.get_user_report_stats(user_id)
            if stats is None:
                raise UserNotFoundError(user_id)
            trust_score = calculate_trust_score(stats.to_factors(), self._rules)
            await self._repo.update_user_trust(stats, trust_score)
        except Exception:
            logger.exception("trust_score_update_failed", extra={"target_user_id": user_id})
            metrics.SCORE_RECOMPUTES.labels(kind="trust", outcome="error").inc()
            raise
        metrics.SCORE_LATENCY.labels(kind="trust").observe(time.perf_counter() - started)
        metrics.record_recompute("trust", fallback=False)
        logger.info(
            "trust_score_updated",
            extra={"target_user_id": user_id, "trust_score": trust_score, "total_reports": stats.total_count},
        )
        return trust_score

    async def get_user_trust_score(self, user_id: str) -> float:
        """Current stored trust, or the base score when it cannot be read."""

        base = self._rules.trust.base_score
        try:
            async with self._repo.transaction() as tx:
                score = await tx.get_user_trust_score(user_id)
        except Exception:
            logger.exception("trust_score_read_failed", extra={"target_user_id": user_id})
            return base
        if score is None:
            return base
        return float(score)
