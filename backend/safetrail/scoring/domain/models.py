"""Records exchanged between the scoring engine and its storage layer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

NEUTRAL_SCORE = 50.0


class ReportStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    def can_transition_to(self, target: "ReportStatus") -> bool:
        return self is ReportStatus.PENDING and target is not ReportStatus.PENDING


class SafetyStatus(str, Enum):
    """Map-facing label derived from a safety score."""

    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"


@dataclass(slots=True)
class PlaceReportCounts:
    """Aggregate report counts for a single place."""

    verified_count: int = 0
    total_count: int = 0
    critical_count: int = 0


@dataclass(slots=True)
class TrustFactors:
    """Inputs of the trust score formula."""

    verified_reports: int = 0
    rejected_reports: int = 0
    reports_with_photos: int = 0
    total_reports: int = 0
    account_age_days: float = 0


@dataclass(slots=True)
class UserReportStats:
    """Recounted report history for a user, as read from the store."""

    user_id: str
    verified_count: int
    rejected_count: int
    photo_count: int
    total_count: int
    account_age_days: int

    def to_factors(self) -> TrustFactors:
        return TrustFactors(
            verified_reports=self.verified_count,
            rejected_reports=self.rejected_count,
            reports_with_photos=self.photo_count,
            total_reports=self.total_count,
            account_age_days=self.account_age_days,
        )


@dataclass(slots=True)
class WeightedReport:
    """A verified report joined with its author's live trust score."""

    severity: int | None
    reporter_trust_score: float | None = None
    user_trust_score: float | None = None


@dataclass(slots=True)
class NewReport:
    place_id: str
    type: str
    severity: int = 1
    user_id: str | None = None
    is_anonymous: bool = False
    has_photo: bool = False
    description: str | None = None


@dataclass(slots=True)
class Report:
    report_id: str
    place_id: str
    user_id: str | None
    type: str
    severity: int
    status: ReportStatus
    is_anonymous: bool
    reporter_trust_score: float
    has_photo: bool
    created_at: datetime
    verified_at: datetime | None = None
    verified_by: str | None = None
    description: str | None = None

    @property
    def counts_toward_trust(self) -> bool:
        return self.user_id is not None and not self.is_anonymous


@dataclass(slots=True)
class ScoreOutcome:
    """Result of a fail-soft computation.

    ``fallback`` is set when the neutral default replaced a failed computation, which keeps
    a real error distinguishable from a place that simply has no data.
    """

    score: float
    fallback: bool = False
    error: str | None = None
    source: str = field(default="simple")

    @classmethod
    def failed(cls, exc: BaseException, *, source: str, default: float = NEUTRAL_SCORE) -> "ScoreOutcome":
        return cls(score=default, fallback=True, error=f"{type(exc).__name__}: {exc}", source=source)


def round_one_decimal(value: float) -> float:
    """Round half-up to one decimal place."""

    return math.floor(value * 10 + 0.5) / 10


def clamp(value: float, minimum: float = 0.0, maximum: float = 100.0) -> float:
    return max(minimum, min(maximum, value))
