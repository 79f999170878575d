"""Tests for contradiction detection and the coherence heuristics."""

import pytest

from govcore.coherence.engine import (
    DECLINE_EVOLUTION_CONFLICT,
    RISK_OPPORTUNITY_CONFLICT,
    detect_contradictions,
    generate_coherence_score,
    generate_rationale,
    predict_system_risk,
    validate_logic,
)
from govcore.state.models import UnifiedState

RISK_VS_OPPORTUNITY = {"risk": {"level": "high"}, "opportunity": {"signal": "strong"}}
BOTH = {
    **RISK_VS_OPPORTUNITY,
    "temporal": {"trend": "decline"},
    "evolution": {"evolution_score": 0.95},
}


def test_risk_opportunity_contradiction():
    assert detect_contradictions(RISK_VS_OPPORTUNITY) == [RISK_OPPORTUNITY_CONFLICT]


def test_both_rules_in_order():
    assert detect_contradictions(BOTH) == [
        RISK_OPPORTUNITY_CONFLICT,
        DECLINE_EVOLUTION_CONFLICT,
    ]
    assert generate_coherence_score(detect_contradictions(BOTH)) == pytest.approx(0.5)


def test_evolution_score_must_exceed_threshold():
    state = {"temporal": {"trend": "decline"}, "evolution": {"evolution_score": 0.8}}
    assert detect_contradictions(state) == []


def test_no_contradictions_in_empty_state():
    assert detect_contradictions({}) == []
    assert detect_contradictions(UnifiedState()) == []


def test_detection_is_deterministic():
    state = UnifiedState.model_validate(BOTH)
    assert detect_contradictions(state) == detect_contradictions(state)


def test_model_and_mapping_agree():
    assert detect_contradictions(UnifiedState.model_validate(BOTH)) == detect_contradictions(BOTH)


@pytest.mark.parametrize("k, expected", [
    (0, 0.8),
    (1, 0.65),
    (2, 0.5),
    (3, 0.35),
    (5, 0.05),
    (6, 0.0),
    (10, 0.0),
])
def test_coherence_score(k, expected):
    assert generate_coherence_score(["c"] * k) == pytest.approx(expected)


def test_system_risk_baseline():
    assert predict_system_risk({}) == pytest.approx(0.3)
    assert predict_system_risk({"risk": {"level": "high"}}) == pytest.approx(0.7)


def test_system_risk_components():
    state = {
        "risk": {"level": "low"},
        "consistency": {"drift": True},
        "operational": {"load": 0.5},
        "health_score": 0.5,
    }
    # 0.3 + 0.2 + 0.1 - 0.15
    assert predict_system_risk(state) == pytest.approx(0.45)


@pytest.mark.parametrize("load, health", [(100, -5), (-100, 5), (100, 5), (-100, -5)])
def test_system_risk_is_clamped(load, health):
    state = {"risk": {"level": "high"}, "operational": {"load": load}, "health_score": health}
    assert 0.0 <= predict_system_risk(state) <= 1.0


def test_system_risk_extreme_values():
    assert predict_system_risk({"operational": {"load": 100}, "health_score": -5}) == 1.0
    assert predict_system_risk({"operational": {"load": -100}, "health_score": 5}) == 0.0


def test_validate_logic():
    assert validate_logic(UnifiedState()) is True
    assert validate_logic({"confidence": 0.5, "health_score": 1.0}) is True
    assert validate_logic({"confidence": 1.5}) is False
    assert validate_logic({"health_score": "good"}) is False
    assert validate_logic(RISK_VS_OPPORTUNITY) is False


def test_generate_rationale():
    assert generate_rationale("ai:trend-detected", {"trend": "x", "at": 1}) == (
        "Reacted to ai:trend-detected using fields: at, trend"
    )
    assert generate_rationale("calc:updated") == "Reacted to calc:updated with no payload fields"
