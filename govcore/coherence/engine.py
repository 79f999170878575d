"""Coherence and contradiction checks over a state snapshot.

Everything here is a pure function: same snapshot in, same answer out.
The scores are fixed heuristics with literal constants, not models.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from govcore.state.models import CLAMPED_FIELDS, UnifiedState, read_number
from govcore.types import clamp

RISK_OPPORTUNITY_CONFLICT = (
    "High risk coexists with a strong opportunity signal"
)
DECLINE_EVOLUTION_CONFLICT = (
    "Temporal trend is declining while the evolution score is above 0.8"
)


def _as_mapping(state: UnifiedState | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(state, UnifiedState):
        return state.model_dump()
    return state


def _section(state: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = state.get(name)
    return value if isinstance(value, dict) else {}


def detect_contradictions(state: UnifiedState | Mapping[str, Any]) -> list[str]:
    """Contradictions in rule order. Not deduplicated."""
    data = _as_mapping(state)
    risk = _section(data, "risk")
    opportunity = _section(data, "opportunity")
    temporal = _section(data, "temporal")
    evolution = _section(data, "evolution")

    contradictions: list[str] = []
    if risk.get("level") == "high" and opportunity.get("signal") == "strong":
        contradictions.append(RISK_OPPORTUNITY_CONFLICT)
    if (
        temporal.get("trend") == "decline"
        and read_number(evolution, "evolution_score") > 0.8
    ):
        contradictions.append(DECLINE_EVOLUTION_CONFLICT)
    return contradictions


def generate_coherence_score(contradictions: Sequence[str]) -> float:
    """0.8 minus 0.15 per contradiction, clamped to [0, 1]."""
    return clamp(0.8 - 0.15 * len(contradictions))


def predict_system_risk(state: UnifiedState | Mapping[str, Any]) -> float:
    data = _as_mapping(state)
    risk = _section(data, "risk")
    consistency = _section(data, "consistency")
    operational = _section(data, "operational")

    score = 0.7 if risk.get("level") == "high" else 0.3
    if consistency.get("drift"):
        score += 0.2
    score += 0.2 * read_number(operational, "load")
    score -= 0.3 * read_number(data, "health_score")
    return clamp(score)


def validate_logic(state: UnifiedState | Mapping[str, Any]) -> bool:
    """True when every derived score present is in [0, 1] and nothing contradicts."""
    data = _as_mapping(state)
    for name in CLAMPED_FIELDS:
        value = data.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not 0.0 <= value <= 1.0:
            return False
    return not detect_contradictions(data)


def generate_rationale(event_type: str, payload: Mapping[str, Any] | None = None) -> str:
    """One-line explanation of why the core reacted to an event."""
    keys = sorted((payload or {}).keys())
    if not keys:
        return f"Reacted to {event_type} with no payload fields"
    return f"Reacted to {event_type} using fields: {', '.join(keys)}"
