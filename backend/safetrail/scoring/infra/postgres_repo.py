"""PostgreSQL-backed repository for scoring aggregates."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Sequence

import asyncpg

from safetrail.scoring.domain.models import (
    NewReport,
    PlaceReportCounts,
    Report,
    ReportStatus,
    UserReportStats,
    WeightedReport,
)
from safetrail.scoring.domain.repository import ScoringRepository

_REPORT_COLUMNS = """
    id, place_id, user_id, type, description, severity, status, is_anonymous,
    reporter_trust_score, has_photo, created_at, verified_at, verified_by
"""


def _as_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


def _report_from_record(row: asyncpg.Record) -> Report:
    return Report(
        report_id=str(row["id"]),
        place_id=str(row["place_id"]),
        user_id=str(row["user_id"]) if row["user_id"] is not None else None,
        type=str(row["type"]),
        severity=int(row["severity"] or 1),
        status=ReportStatus(str(row["status"])),
        is_anonymous=bool(row["is_anonymous"]),
        reporter_trust_score=float(row["reporter_trust_score"] if row["reporter_trust_score"] is not None else 50),
        has_photo=bool(row["has_photo"]),
        created_at=row["created_at"],
        verified_at=row["verified_at"],
        verified_by=str(row["verified_by"]) if row["verified_by"] is not None else None,
        description=row["description"],
    )


class PostgresScoringRepository(ScoringRepository):
    """Asyncpg-backed repository.

    Constructed over a pool; ``transaction()`` acquires a connection and yields a repository
    bound to it. On a bound repository ``transaction()`` opens a savepoint.
    """

    def __init__(self, pool: asyncpg.Pool, *, connection: asyncpg.Connection | None = None) -> None:
        self.pool = pool
        self._conn = connection

    @property
    def _db(self):
        return self._conn if self._conn is not None else self.pool

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator["PostgresScoringRepository"]:
        if self._conn is not None:
            async with self._conn.transaction():
                yield self
            return
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresScoringRepository(self.pool, connection=conn)

    def transaction(self) -> AsyncContextManager["PostgresScoringRepository"]:
        return self._transaction()

    # --- places ----------------------------------------------------------

    async def get_place_report_counts(self, place_id: str, *, critical_severity: int) -> PlaceReportCounts:
        query = """
        SELECT
            COUNT(*) FILTER (WHERE status = 'verified')::int AS verified_count,
            COUNT(*)::int AS total_count,
            COUNT(*) FILTER (WHERE status = 'verified' AND severity >= $2)::int AS critical_count
        FROM reports
        WHERE place_id = $1
        """
        row = await self._db.fetchrow(query, place_id, critical_severity)
        if row is None:
            return PlaceReportCounts()
        return PlaceReportCounts(
            verified_count=int(row["verified_count"] or 0),
            total_count=int(row["total_count"] or 0),
            critical_count=int(row["critical_count"] or 0),
        )

    async def list_weighted_reports(self, place_id: str) -> Sequence[WeightedReport]:
        query = """
        SELECT r.severity, r.reporter_trust_score, u.trust_score
        FROM reports r
        LEFT JOIN users u ON r.user_id = u.id
        WHERE r.place_id = $1 AND r.status = 'verified'
        """
        rows = await self._db.fetch(query, place_id)
        return [
            WeightedReport(
                severity=int(row["severity"]) if row["severity"] is not None else None,
                reporter_trust_score=_as_float(row["reporter_trust_score"]),
                user_trust_score=_as_float(row["trust_score"]),
            )
            for row in rows
        ]

    async def get_place_city_id(self, place_id: str) -> str | None:
        value = await self._db.fetchval("SELECT city_id FROM places WHERE id = $1", place_id)
        return str(value) if value is not None else None

    async def update_place_safety_score(self, place_id: str, score: float) -> None:
        await self._db.execute(
            "UPDATE places SET safety_score = $1, updated_at = CURRENT_TIMESTAMP WHERE id = $2",
            score,
            place_id,
        )

    async def refresh_place_report_count(self, place_id: str) -> int:
        value = await self._db.fetchval(
            """
            UPDATE places
            SET report_count = (SELECT COUNT(*) FROM reports WHERE place_id = $1)
            WHERE id = $1
            RETURNING report_count
            """,
            place_id,
        )
        return int(value or 0)

    async def list_place_ids(self, city_ids: Sequence[str] | None = None) -> list[str]:
        if city_ids is None:
            rows = await self._db.fetch("SELECT id FROM places ORDER BY id")
        else:
            rows = await self._db.fetch(
                "SELECT id FROM places WHERE city_id = ANY($1::uuid[]) ORDER BY id",
                [str(city_id) for city_id in city_ids],
            )
        return [str(row["id"]) for row in rows]

    # --- cities ----------------------------------------------------------

    async def list_city_ids(self) -> list[str]:
        rows = await self._db.fetch("SELECT id FROM cities ORDER BY id")
        return [str(row["id"]) for row in rows]

    async def average_place_score(self, city_id: str) -> float | None:
        value = await self._db.fetchval("SELECT AVG(safety_score) FROM places WHERE city_id = $1", city_id)
        return _as_float(value)

    async def update_city_safety_score(self, city_id: str, score: float) -> None:
        await self._db.execute(
            "UPDATE cities SET safety_score = $1, updated_at = CURRENT_TIMESTAMP WHERE id = $2",
            score,
            city_id,
        )

    async def refresh_city_counts(self, city_id: str) -> None:
        await self._db.execute(
            """
            UPDATE cities
            SET places_count = (SELECT COUNT(*) FROM places WHERE city_id = $1),
                reports_count = (
                    SELECT COUNT(*)
                    FROM reports r
                    JOIN places p ON r.place_id = p.id
                    WHERE p.city_id = $1
                )
            WHERE id = $1
            """,
            city_id,
        )

    # --- users -----------------------------------------------------------

    async def get_user_report_stats(self, user_id: str) -> UserReportStats | None:
        user = await self._db.fetchrow(
            "SELECT EXTRACT(DAY FROM NOW() - created_at)::int AS account_age_days FROM users WHERE id = $1",
            user_id,
        )
        if user is None:
            return None
        stats = await self._db.fetchrow(
            """
            SELECT
                COUNT(*) FILTER (WHERE status = 'verified')::int AS verified_count,
                COUNT(*) FILTER (WHERE status = 'rejected')::int AS rejected_count,
                COUNT(*) FILTER (WHERE has_photo = TRUE)::int AS photo_count,
                COUNT(*)::int AS total_count
            FROM reports
            WHERE user_id = $1
            """,
            user_id,
        )
        return UserReportStats(
            user_id=user_id,
            verified_count=int(stats["verified_count"] or 0) if stats else 0,
            rejected_count=int(stats["rejected_count"] or 0) if stats else 0,
            photo_count=int(stats["photo_count"] or 0) if stats else 0,
            total_count=int(stats["total_count"] or 0) if stats else 0,
            account_age_days=int(user["account_age_days"] or 0),
        )

    async def update_user_trust(self, stats: UserReportStats, trust_score: float) -> None:
        await self._db.execute(
            """
            UPDATE users
            SET trust_score = $1,
                verified_reports_count = $2,
                rejected_reports_count = $3,
                reports_with_photos_count = $4,
                total_reports_count = $5,
                updated_at = NOW()
            WHERE id = $6
            """,
            trust_score,
            stats.verified_count,
            stats.rejected_count,
            stats.photo_count,
            stats.total_count,
            stats.user_id,
        )

    async def get_user_trust_score(self, user_id: str) -> float | None:
        value = await self._db.fetchval("SELECT trust_score FROM users WHERE id = $1", user_id)
        return _as_float(value)

    # --- reports ---------------------------------------------------------

    async def insert_report(self, report: NewReport, reporter_trust_score: float) -> Report:
        query = f"""
        INSERT INTO reports (
            user_id, place_id, type, description, severity, status, is_anonymous,
            reporter_trust_score, has_photo
        )
        VALUES ($1, $2, $3, $4, $5, 'pending', $6, $7, $8)
        RETURNING {_REPORT_COLUMNS}
        """
        row = await self._db.fetchrow(
            query,
            None if report.is_anonymous else report.user_id,
            report.place_id,
            report.type,
            report.description,
            report.severity,
            report.is_anonymous,
            reporter_trust_score,
            report.has_photo,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert report")
        return _report_from_record(row)

    async def get_report(self, report_id: str) -> Report | None:
        row = await self._db.fetchrow(f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = $1", report_id)
        return _report_from_record(row) if row else None

    async def set_report_status(self, report_id: str, status: ReportStatus, moderator_id: str) -> Report | None:
        query = f"""
        UPDATE reports
        SET status = $1, verified_at = CURRENT_TIMESTAMP, verified_by = $2, updated_at = CURRENT_TIMESTAMP
        WHERE id = $3 AND status = 'pending'
        RETURNING {_REPORT_COLUMNS}
        """
        row = await self._db.fetchrow(query, status.value, moderator_id, report_id)
        return _report_from_record(row) if row else None
