"""Storage contract for the scoring engine and an in-memory reference implementation."""

from __future__ import annotations

import asyncio
import copy
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import AsyncContextManager, AsyncIterator, Protocol, Sequence

from safetrail.scoring.domain.models import (
    NEUTRAL_SCORE,
    NewReport,
    PlaceReportCounts,
    Report,
    ReportStatus,
    UserReportStats,
    WeightedReport,
)


class ScoringRepository(Protocol):
    """Reads aggregate counts and persists derived scores.

    ``transaction()`` yields a repository bound to a single transaction. Calling it again on
    the yielded repository opens a nested transaction (savepoint) that can roll back alone.
    """

    def transaction(self) -> AsyncContextManager["ScoringRepository"]:
        ...

    async def get_place_report_counts(self, place_id: str, *, critical_severity: int) -> PlaceReportCounts:
        ...

    async def list_weighted_reports(self, place_id: str) -> Sequence[WeightedReport]:
        ...

    async def get_place_city_id(self, place_id: str) -> str | None:
        ...

    async def update_place_safety_score(self, place_id: str, score: float) -> None:
        ...

    async def refresh_place_report_count(self, place_id: str) -> int:
        ...

    async def list_place_ids(self, city_ids: Sequence[str] | None = None) -> list[str]:
        ...

    async def list_city_ids(self) -> list[str]:
        ...

    async def average_place_score(self, city_id: str) -> float | None:
        ...

    async def update_city_safety_score(self, city_id: str, score: float) -> None:
        ...

    async def refresh_city_counts(self, city_id: str) -> None:
        ...

    async def get_user_report_stats(self, user_id: str) -> UserReportStats | None:
        ...

    async def update_user_trust(self, stats: UserReportStats, trust_score: float) -> None:
        ...

    async def get_user_trust_score(self, user_id: str) -> float | None:
        ...

    async def insert_report(self, report: NewReport, reporter_trust_score: float) -> Report:
        ...

    async def get_report(self, report_id: str) -> Report | None:
        ...

    async def set_report_status(self, report_id: str, status: ReportStatus, moderator_id: str) -> Report | None:
        """Move a pending report to ``status``; returns None when it is no longer pending."""
        ...


@dataclass
class PlaceRecord:
    place_id: str
    city_id: str
    safety_score: float = NEUTRAL_SCORE
    report_count: int = 0
    updated_at: datetime | None = None


@dataclass
class CityRecord:
    city_id: str
    country_id: str | None = None
    safety_score: float = NEUTRAL_SCORE
    reports_count: int = 0
    places_count: int = 0
    updated_at: datetime | None = None


@dataclass
class UserRecord:
    user_id: str
    created_at: datetime
    trust_score: float | None = NEUTRAL_SCORE
    verified_reports_count: int = 0
    rejected_reports_count: int = 0
    reports_with_photos_count: int = 0
    total_reports_count: int = 0
    updated_at: datetime | None = None


@dataclass
class _State:
    places: dict[str, PlaceRecord] = field(default_factory=dict)
    cities: dict[str, CityRecord] = field(default_factory=dict)
    users: dict[str, UserRecord] = field(default_factory=dict)
    reports: dict[str, Report] = field(default_factory=dict)


class InMemoryScoringRepository(ScoringRepository):
    """Reference repository used in tests and developer environments.

    Outermost transactions are serialised per repository; nested ones re-enter from the
    owning task and roll back to their own snapshot.
    """

    def __init__(self, *, clock=None) -> None:
        self.state = _State()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None

    # --- seeding helpers -------------------------------------------------

    def add_city(self, city_id: str, *, country_id: str | None = None, safety_score: float = NEUTRAL_SCORE) -> CityRecord:
        record = CityRecord(city_id=city_id, country_id=country_id, safety_score=safety_score)
        self.state.cities[city_id] = record
        return record

    def add_place(self, place_id: str, city_id: str, *, safety_score: float = NEUTRAL_SCORE) -> PlaceRecord:
        record = PlaceRecord(place_id=place_id, city_id=city_id, safety_score=safety_score)
        self.state.places[place_id] = record
        return record

    def add_user(
        self,
        user_id: str,
        *,
        created_at: datetime | None = None,
        trust_score: float | None = NEUTRAL_SCORE,
    ) -> UserRecord:
        record = UserRecord(user_id=user_id, created_at=created_at or self._clock(), trust_score=trust_score)
        self.state.users[user_id] = record
        return record

    def add_report(
        self,
        place_id: str,
        *,
        user_id: str | None = None,
        severity: int = 1,
        status: ReportStatus = ReportStatus.PENDING,
        has_photo: bool = False,
        is_anonymous: bool = False,
        reporter_trust_score: float = NEUTRAL_SCORE,
        report_type: str = "other",
    ) -> Report:
        report = Report(
            report_id=str(uuid.uuid4()),
            place_id=place_id,
            user_id=user_id,
            type=report_type,
            severity=severity,
            status=status,
            is_anonymous=is_anonymous,
            reporter_trust_score=reporter_trust_score,
            has_photo=has_photo,
            created_at=self._clock(),
        )
        self.state.reports[report.report_id] = report
        return report

    # --- transactions ----------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator["InMemoryScoringRepository"]:
        task = asyncio.current_task()
        if self._owner is not None and self._owner is task:
            async with self._savepoint():
                yield self
            return
        async with self._lock:
            self._owner = task
            try:
                async with self._savepoint():
                    yield self
            finally:
                self._owner = None

    @asynccontextmanager
    async def _savepoint(self) -> AsyncIterator[None]:
        snapshot = copy.deepcopy(self.state)
        try:
            yield
        except BaseException:
            self.state = snapshot
            raise

    def transaction(self) -> AsyncContextManager["InMemoryScoringRepository"]:
        return self._transaction()

    # --- places ----------------------------------------------------------

    def _place_reports(self, place_id: str) -> list[Report]:
        return [report for report in self.state.reports.values() if report.place_id == place_id]

    async def get_place_report_counts(self, place_id: str, *, critical_severity: int) -> PlaceReportCounts:
        reports = self._place_reports(place_id)
        verified = [report for report in reports if report.status is ReportStatus.VERIFIED]
        return PlaceReportCounts(
            verified_count=len(verified),
            total_count=len(reports),
            critical_count=sum(1 for report in verified if report.severity >= critical_severity),
        )

    async def list_weighted_reports(self, place_id: str) -> Sequence[WeightedReport]:
        rows: list[WeightedReport] = []
        for report in self._place_reports(place_id):
            if report.status is not ReportStatus.VERIFIED:
                continue
            user = self.state.users.get(report.user_id) if report.user_id else None
            rows.append(
                WeightedReport(
                    severity=report.severity,
                    reporter_trust_score=report.reporter_trust_score,
                    user_trust_score=user.trust_score if user else None,
                )
            )
        return rows

    async def get_place_city_id(self, place_id: str) -> str | None:
        place = self.state.places.get(place_id)
        return place.city_id if place else None

    async def update_place_safety_score(self, place_id: str, score: float) -> None:
        place = self.state.places.get(place_id)
        if place is None:
            return
        place.safety_score = score
        place.updated_at = self._clock()

    async def refresh_place_report_count(self, place_id: str) -> int:
        count = len(self._place_reports(place_id))
        place = self.state.places.get(place_id)
        if place is not None:
            place.report_count = count
        return count

    async def list_place_ids(self, city_ids: Sequence[str] | None = None) -> list[str]:
        wanted = set(city_ids) if city_ids is not None else None
        return sorted(
            place.place_id
            for place in self.state.places.values()
            if wanted is None or place.city_id in wanted
        )

    # --- cities ----------------------------------------------------------

    async def list_city_ids(self) -> list[str]:
        return sorted(self.state.cities)

    async def average_place_score(self, city_id: str) -> float | None:
        scores = [place.safety_score for place in self.state.places.values() if place.city_id == city_id]
        if not scores:
            return None
        return sum(scores) / len(scores)

    async def update_city_safety_score(self, city_id: str, score: float) -> None:
        city = self.state.cities.get(city_id)
        if city is None:
            return
        city.safety_score = score
        city.updated_at = self._clock()

    async def refresh_city_counts(self, city_id: str) -> None:
        city = self.state.cities.get(city_id)
        if city is None:
            return
        place_ids = {place.place_id for place in self.state.places.values() if place.city_id == city_id}
        city.places_count = len(place_ids)
        city.reports_count = sum(1 for report in self.state.reports.values() if report.place_id in place_ids)

    # --- users -----------------------------------------------------------

    async def get_user_report_stats(self, user_id: str) -> UserReportStats | None:
        user = self.state.users.get(user_id)
        if user is None:
            return None
        reports = [report for report in self.state.reports.values() if report.user_id == user_id]
        return UserReportStats(
            user_id=user_id,
            verified_count=sum(1 for report in reports if report.status is ReportStatus.VERIFIED),
            rejected_count=sum(1 for report in reports if report.status is ReportStatus.REJECTED),
            photo_count=sum(1 for report in reports if report.has_photo),
            total_count=len(reports),
            account_age_days=max(0, (self._clock() - user.created_at).days),
        )

    async def update_user_trust(self, stats: UserReportStats, trust_score: float) -> None:
        user = self.state.users.get(stats.user_id)
        if user is None:
            return
        user.trust_score = trust_score
        user.verified_reports_count = stats.verified_count
        user.rejected_reports_count = stats.rejected_count
        user.reports_with_photos_count = stats.photo_count
        user.total_reports_count = stats.total_count
        user.updated_at = self._clock()

    async def get_user_trust_score(self, user_id: str) -> float | None:
        user = self.state.users.get(user_id)
        return user.trust_score if user else None

    # --- reports ---------------------------------------------------------

    async def insert_report(self, report: NewReport, reporter_trust_score: float) -> Report:
        created = Report(
            report_id=str(uuid.uuid4()),
            place_id=report.place_id,
            user_id=None if report.is_anonymous else report.user_id,
            type=report.type,
            severity=report.severity,
            status=ReportStatus.PENDING,
            is_anonymous=report.is_anonymous,
            reporter_trust_score=reporter_trust_score,
            has_photo=report.has_photo,
            created_at=self._clock(),
            description=report.description,
        )
        self.state.reports[created.report_id] = created
        return created

    async def get_report(self, report_id: str) -> Report | None:
        report = self.state.reports.get(report_id)
        return replace(report) if report else None

    async def set_report_status(self, report_id: str, status: ReportStatus, moderator_id: str) -> Report | None:
        report = self.state.reports.get(report_id)
        if report is None or report.status is not ReportStatus.PENDING:
            return None
        report.status = status
        report.verified_at = self._clock()
        report.verified_by = moderator_id
        return replace(report)
