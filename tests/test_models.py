"""Tests for entity models and risk scoring."""

import pytest

from zeus.models import Activity, Risk, kind_for_id, risk_score, score_level


@pytest.mark.parametrize(
    "probability,impact,expected",
    [
        ("low", "low", 1),
        ("medium", "high", 6),
        ("high", "high", 9),
        ("high", "critical", 12),
    ],
)
def test_risk_score_is_probability_times_impact(probability: str, impact: str, expected: int) -> None:
    assert risk_score(probability, impact) == expected


def test_risk_score_is_recomputed_on_construction() -> None:
    risk = Risk(id="risk-x", probability="medium", impact="critical", score=1)
    assert risk.score == 8
    assert risk.score_level == "critical"


def test_score_levels() -> None:
    assert score_level(2) == "low"
    assert score_level(4) == "medium"
    assert score_level(6) == "high"
    assert score_level(8) == "critical"


def test_kind_for_id() -> None:
    assert kind_for_id("obj-123") == "objective"
    assert kind_for_id("act-x") == "activity"
    assert kind_for_id("uc-login") == "usecase"
    assert kind_for_id("nope-1") is None
    assert kind_for_id("noprefix") is None


def test_activity_is_done() -> None:
    assert Activity(id="act-1", status="done").is_done
    assert not Activity(id="act-2", status="blocked").is_done
