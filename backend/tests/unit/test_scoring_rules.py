from __future__ import annotations

from pathlib import Path

import pytest

from safetrail.scoring.domain.models import TrustFactors
from safetrail.scoring.domain.rules import ScoringRules, load_scoring_rules
from safetrail.scoring.domain.trust import calculate_trust_score, get_trust_weight


def test_defaults_without_path() -> None:
    assert load_scoring_rules(None) == ScoringRules.default()


def test_yaml_overrides(tmp_path: Path) -> None:
    path = tmp_path / "scoring.yml"
    path.write_text(
        "place:\n"
        "  base_score: 90\n"
        "  critical_severity: 4\n"
        "trust:\n"
        "  verified_report_bonus: 4\n"
        "  weight_bands:\n"
        "    - {min_score: 50, weight: 1.25}\n"
        "    - [90, 3]\n"
        "status:\n"
        "  safe_min: 75\n",
        encoding="utf-8",
    )

    rules = load_scoring_rules(path)

    assert rules.place.base_score == 90.0
    assert rules.place.critical_severity == 4
    assert rules.place.max_ratio_deduction == 35.0
    assert rules.trust.weight_bands == ((90.0, 3.0), (50.0, 1.25))
    assert rules.status.safe_min == 75.0
    assert get_trust_weight(95.0, rules.trust) == 3.0
    assert get_trust_weight(49.0, rules.trust) == 0.5
    assert calculate_trust_score(TrustFactors(verified_reports=1, total_reports=1), rules) == 64.0


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "scoring.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_scoring_rules(path)


def test_malformed_value_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "scoring.yml"
    path.write_text("place:\n  base_score: high\n", encoding="utf-8")
    with pytest.raises(ValueError, match="place.base_score"):
        load_scoring_rules(path)
