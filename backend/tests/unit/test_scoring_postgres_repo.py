from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from safetrail.scoring.domain.models import NewReport, ReportStatus
from safetrail.scoring.infra.postgres_repo import PostgresScoringRepository


def _pool_with_connection(conn: MagicMock) -> MagicMock:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.acquire.return_value.__aenter__.return_value = conn
    return pool


def _report_row(**overrides):
    row = {
        "id": "r1",
        "place_id": "p1",
        "user_id": "u1",
        "type": "theft",
        "description": None,
        "severity": 3,
        "status": "pending",
        "is_anonymous": False,
        "reporter_trust_score": 61.5,
        "has_photo": True,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "verified_at": None,
        "verified_by": None,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_place_counts_are_mapped() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchrow = AsyncMock(return_value={"verified_count": 4, "total_count": 9, "critical_count": 2})
    repo = PostgresScoringRepository(pool)

    counts = await repo.get_place_report_counts("p1", critical_severity=3)

    assert (counts.verified_count, counts.total_count, counts.critical_count) == (4, 9, 2)
    args = pool.fetchrow.await_args.args
    assert "FILTER (WHERE status = 'verified' AND severity >= $2)" in args[0]
    assert args[1:] == ("p1", 3)


@pytest.mark.asyncio
async def test_missing_user_yields_no_stats() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchrow = AsyncMock(return_value=None)
    repo = PostgresScoringRepository(pool)

    assert await repo.get_user_report_stats("ghost") is None
    assert pool.fetchrow.await_count == 1


@pytest.mark.asyncio
async def test_user_stats_combine_account_age_and_counts() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchrow = AsyncMock(
        side_effect=[
            {"account_age_days": 45},
            {"verified_count": 3, "rejected_count": 1, "photo_count": 2, "total_count": 5},
        ]
    )
    repo = PostgresScoringRepository(pool)

    stats = await repo.get_user_report_stats("u1")

    assert stats is not None
    assert stats.account_age_days == 45
    assert stats.to_factors().total_reports == 5
    assert stats.photo_count == 2


@pytest.mark.asyncio
async def test_transaction_binds_to_acquired_connection() -> None:
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=_report_row(status="verified", verified_by="admin-1"))
    conn.execute = AsyncMock()
    pool = _pool_with_connection(conn)
    repo = PostgresScoringRepository(pool)

    async with repo.transaction() as tx:
        report = await tx.set_report_status("r1", ReportStatus.VERIFIED, "admin-1")
        async with tx.transaction() as savepoint:
            await savepoint.update_place_safety_score("p1", 62.5)

    assert report.status is ReportStatus.VERIFIED
    assert report.verified_by == "admin-1"
    assert conn.transaction.call_count == 2
    conn.execute.assert_awaited_once()
    assert conn.execute.await_args.args[1:] == (62.5, "p1")
    pool.fetchrow.assert_not_called()


@pytest.mark.asyncio
async def test_insert_report_drops_author_for_anonymous_reports() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchrow = AsyncMock(return_value=_report_row(user_id=None, is_anonymous=True, reporter_trust_score=50))
    repo = PostgresScoringRepository(pool)

    report = await repo.insert_report(
        NewReport(place_id="p1", type="theft", severity=3, user_id="u1", is_anonymous=True),
        50.0,
    )

    args = pool.fetchrow.await_args.args
    assert args[1] is None
    assert report.user_id is None
    assert report.reporter_trust_score == 50.0


@pytest.mark.asyncio
async def test_average_is_none_for_city_without_places() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchval = AsyncMock(return_value=None)
    repo = PostgresScoringRepository(pool)

    assert await repo.average_place_score("c1") is None


@pytest.mark.asyncio
async def test_status_update_only_moves_pending_reports() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    pool.fetchrow = AsyncMock(return_value=None)
    repo = PostgresScoringRepository(pool)

    assert await repo.set_report_status("r1", ReportStatus.REJECTED, "admin-2") is None
    query, *args = pool.fetchrow.await_args.args
    assert "status = 'pending'" in query
    assert args == ["rejected", "admin-2", "r1"]
