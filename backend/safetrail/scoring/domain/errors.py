"""Domain errors raised by the scoring engine."""

from __future__ import annotations


class ScoringError(Exception):
    """Base error for scoring and report moderation failures."""


class UserNotFoundError(ScoringError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class PlaceNotFoundError(ScoringError):
    def __init__(self, place_id: str) -> None:
        super().__init__("Place not found")
        self.place_id = place_id


class ReportNotFoundError(ScoringError):
    def __init__(self, report_id: str) -> None:
        super().__init__("Report not found")
        self.report_id = report_id


class InvalidReportError(ScoringError):
    """Raised when a submitted report fails validation."""


class InvalidReportTransitionError(ScoringError):
    def __init__(self, report_id: str, current: str, target: str) -> None:
        super().__init__(f"report {report_id} cannot move from {current} to {target}")
        self.report_id = report_id
        self.current = current
        self.target = target
