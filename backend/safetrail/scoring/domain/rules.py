"""Scoring constants and loader for YAML overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceRules:
    base_score: float = 85.0
    max_ratio_deduction: float = 35.0
    critical_penalty: float = 5.0
    critical_severity: int = 3
    error_default: float = 50.0


@dataclass(frozen=True)
class TrustRules:
    base_score: float = 50.0
    verified_report_bonus: float = 5.0
    rejected_report_penalty: float = 3.0
    photo_bonus: float = 2.0
    high_accuracy_rate: float = 0.8
    high_accuracy_bonus: float = 10.0
    medium_accuracy_rate: float = 0.6
    medium_accuracy_bonus: float = 5.0
    low_accuracy_rate: float = 0.3
    low_accuracy_penalty: float = 10.0
    account_age_bonus_per_month: float = 0.5
    max_account_age_bonus: float = 10.0
    days_per_month: float = 30.0
    # (minimum trust score, weight), highest threshold first
    weight_bands: tuple[tuple[float, float], ...] = ((80.0, 2.0), (60.0, 1.5), (40.0, 1.0), (20.0, 0.7))
    floor_weight: float = 0.5


@dataclass(frozen=True)
class WeightedRules:
    severity_impact: float = 10.0
    default_severity: int = 1
    default_trust: float = 50.0
    empty_score: float = 50.0
    error_default: float = 50.0


@dataclass(frozen=True)
class CityRules:
    empty_score: float = 50.0


@dataclass(frozen=True)
class StatusRules:
    safe_min: float = 80.0
    caution_min: float = 50.0


@dataclass(frozen=True)
class ScoringRules:
    """Container for every tunable constant used by the scorers."""

    place: PlaceRules = field(default_factory=PlaceRules)
    trust: TrustRules = field(default_factory=TrustRules)
    weighted: WeightedRules = field(default_factory=WeightedRules)
    city: CityRules = field(default_factory=CityRules)
    status: StatusRules = field(default_factory=StatusRules)

    @staticmethod
    def default() -> "ScoringRules":
        return ScoringRules()


def _apply_section(section: Any, raw: object, name: str) -> Any:
    if raw is None:
        return section
    if not isinstance(raw, dict):
        raise ValueError(f"scoring rules section '{name}' must be a mapping")
    known = {item.name: item for item in fields(section)}
    overrides: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("scoring_rules_unknown_key", extra={"section": name, "key": key})
            continue
        current = getattr(section, key)
        try:
            if key == "weight_bands":
                overrides[key] = _parse_weight_bands(value)
            elif isinstance(current, bool):
                overrides[key] = bool(value)
            elif isinstance(current, int):
                overrides[key] = int(value)
            else:
                overrides[key] = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid value for {name}.{key}: {value!r}") from exc
    return replace(section, **overrides)


def _parse_weight_bands(value: object) -> tuple[tuple[float, float], ...]:
    if not isinstance(value, list):
        raise ValueError("weight_bands must be a list")
    bands: list[tuple[float, float]] = []
    for item in value:
        if isinstance(item, dict):
            bands.append((float(item["min_score"]), float(item["weight"])))
        else:
            minimum, weight = item
            bands.append((float(minimum), float(weight)))
    return tuple(sorted(bands, key=lambda band: band[0], reverse=True))


def load_scoring_rules(path: str | Path | None) -> ScoringRules:
    """Load rule overrides from YAML, falling back to defaults when no path is given."""

    rules = ScoringRules.default()
    if not path:
        return rules
    with open(path, "r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError("scoring rules must be a mapping")
    data: Mapping[str, object] = loaded
    return ScoringRules(
        place=_apply_section(rules.place, data.get("place"), "place"),
        trust=_apply_section(rules.trust, data.get("trust"), "trust"),
        weighted=_apply_section(rules.weighted, data.get("weighted"), "weighted"),
        city=_apply_section(rules.city, data.get("city"), "city"),
        status=_apply_section(rules.status, data.get("status"), "status"),
    )


DEFAULT_RULES = ScoringRules.default()
