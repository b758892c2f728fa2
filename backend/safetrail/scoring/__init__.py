"""Public surface of the scoring engine."""

from safetrail.scoring.domain.city import CityRollup
from safetrail.scoring.domain.models import ScoreOutcome, TrustFactors
from safetrail.scoring.domain.moderation import ReportModerationService
from safetrail.scoring.domain.place_score import (
    PlaceSafetyScorer,
    compute_place_safety_score,
    safety_status_for,
)
from safetrail.scoring.domain.strategies import ScoringStrategy, resolve_strategy
from safetrail.scoring.domain.trust import TrustScorer, calculate_trust_score, get_trust_weight
from safetrail.scoring.domain.weighted import WeightedSafetyAggregator, compute_weighted_safety_score

__all__ = [
    "CityRollup",
    "PlaceSafetyScorer",
    "ReportModerationService",
    "ScoreOutcome",
    "ScoringStrategy",
    "TrustFactors",
    "TrustScorer",
    "WeightedSafetyAggregator",
    "calculate_trust_score",
    "compute_place_safety_score",
    "compute_weighted_safety_score",
    "get_trust_weight",
    "resolve_strategy",
    "safety_status_for",
]
