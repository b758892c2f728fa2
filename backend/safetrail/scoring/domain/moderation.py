"""Report submission and moderation with dependent score recomputation."""

from __future__ import annotations

import logging

from safetrail.obs import metrics
from safetrail.obs.logging import bind_context, reset_context
from safetrail.scoring.domain.caching import ScoreCache
from safetrail.scoring.domain.city import CityRollup
from safetrail.scoring.domain.errors import (
    InvalidReportError,
    InvalidReportTransitionError,
    PlaceNotFoundError,
    ReportNotFoundError,
)
from safetrail.scoring.domain.models import NewReport, Report, ReportStatus
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import DEFAULT_RULES, ScoringRules
from safetrail.scoring.domain.strategies import ScoringStrategy, apply_place_score, resolve_strategy
from safetrail.scoring.domain.trust import TrustScorer

logger = logging.getLogger(__name__)

MIN_SEVERITY = 1
MAX_SEVERITY = 5


class ReportModerationService:
    """Applies report status transitions and keeps derived scores consistent.

    A transition recomputes, in order, the author's trust score, the place score and the
    city roll-up, all inside one transaction. Cache keys are dropped only after commit.
    The trust step is fail-loud and rolls the whole transition back; the place and city
    steps are fail-soft and run in savepoints.
    """

    def __init__(
        self,
        repository: ScoringRepository,
        *,
        cache: ScoreCache | None = None,
        rules: ScoringRules = DEFAULT_RULES,
        strategy: ScoringStrategy | None = None,
    ) -> None:
        self._repo = repository
        self._cache = cache
        self._rules = rules
        self._strategy = strategy or resolve_strategy("simple", repository, rules=rules)
        self._trust = TrustScorer(repository, rules=rules)
        self._city = CityRollup(repository, rules=rules)

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    async def submit_report(self, report: NewReport) -> Report:
        if not report.type or not report.type.strip():
            raise InvalidReportError("report type is required")
        if not isinstance(report.severity, int) or not MIN_SEVERITY <= report.severity <= MAX_SEVERITY:
            raise InvalidReportError(f"severity must be between {MIN_SEVERITY} and {MAX_SEVERITY}")

        snapshot = self._rules.trust.base_score
        if report.user_id and not report.is_anonymous:
            snapshot = await self._trust.get_user_trust_score(report.user_id)

        async with self._repo.transaction() as tx:
            city_id = await tx.get_place_city_id(report.place_id)
            if city_id is None:
                raise PlaceNotFoundError(report.place_id)
            created = await tx.insert_report(report, snapshot)
            await tx.refresh_place_report_count(report.place_id)
            await tx.refresh_city_counts(city_id)

        metrics.REPORT_TRANSITIONS.labels(status=ReportStatus.PENDING.value).inc()
        logger.info(
            "report_submitted",
            extra={"report_id": created.report_id, "place_id": report.place_id, "severity": report.severity},
        )
        if self._cache is not None:
            await self._cache.invalidate_place(report.place_id, city_id)
        return created

    async def verify_report(self, report_id: str, moderator_id: str) -> Report:
        return await self._transition(report_id, ReportStatus.VERIFIED, moderator_id)

    async def reject_report(self, report_id: str, moderator_id: str) -> Report:
        return await self._transition(report_id, ReportStatus.REJECTED, moderator_id)

    async def _transition(self, report_id: str, target: ReportStatus, moderator_id: str) -> Report:
        tokens = bind_context(report_id=report_id)
        try:
            async with self._repo.transaction() as tx:
                report = await tx.get_report(report_id)
                if report is None:
                    raise ReportNotFoundError(report_id)
                current = report.status
                if not current.can_transition_to(target):
                    raise InvalidReportTransitionError(report_id, current.value, target.value)
                place_id = report.place_id
                author_id = report.user_id if report.counts_toward_trust else None

                updated = await tx.set_report_status(report_id, target, moderator_id)
                if updated is None:
                    # Another moderator moved the report after it was read.
                    latest = await tx.get_report(report_id)
                    raced = latest.status.value if latest else current.value
                    raise InvalidReportTransitionError(report_id, raced, target.value)
                if author_id is not None:
                    await self._trust.bind(tx).update_user_trust_score(author_id)
                outcome = await apply_place_score(self._strategy.bind(tx), tx, place_id)
                rollup = self._city.bind(tx)
                city_id = await rollup.city_for_place(place_id)
                if city_id is not None:
                    await rollup.update(city_id)
                    await rollup.refresh_counts(city_id)

            metrics.REPORT_TRANSITIONS.labels(status=target.value).inc()
            logger.info(
                "report_moderated",
                extra={
                    "status": target.value,
                    "place_id": place_id,
                    "city_id": city_id,
                    "place_score": outcome.score,
                    "place_score_fallback": outcome.fallback,
                    "moderator_id": moderator_id,
                },
            )
            if self._cache is not None:
                await self._cache.invalidate_place(place_id, city_id)
            return updated
        finally:
            reset_context(tokens)
