"""Core types shared across all govcore subsystems."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# ── Aliases ───────────────────────────────────────────────────────────────────

Payload: TypeAlias = dict[str, Any]
Snapshot: TypeAlias = dict[str, Any]


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


STATE_STORE_SOURCE = "unified-state-store"


# ── Event taxonomy ────────────────────────────────────────────────────────────


class EventType(str, Enum):
    # Inbound: what the orchestrator reacts to
    CALC_UPDATED = "calc:updated"
    CALC_COMPLETED = "calc:completed"
    PREDICTIVE_INSIGHT = "ai:predictive-insight"
    TREND_DETECTED = "ai:trend-detected"
    FUTURE_STATE_PREDICTED = "ai:future-state-predicted"
    TEMPORAL_ANOMALY = "ai:temporal-anomaly"
    EMOTION_INFERRED = "ai:emotion-inferred"
    USER_PROFILE_UPDATED = "ai:user-profile-updated"
    SIGNAL_QUALITY = "ai:signal-quality"
    EVOLUTION_SCORE_UPDATED = "ai:evolution-score-updated"
    CONSISTENCY_WARNING = "ai:consistency-warning"
    INTERNAL_DRIFT = "ai:internal-drift"
    CORE_SYNC = "ai:core-sync"

    # Outbound: what the core emits
    CONTRADICTION_DETECTED = "ai:contradiction-detected"
    COHERENCE_WARNING = "ai:coherence-warning"
    DECISION_VALIDATED = "ai:decision-validated"
    GOVERNANCE_ALERT = "ai:governance-alert"
    GOVERNANCE_VIOLATION = "ai:governance-violation"
    PERSONALITY_ESCALATION = "ai:personality-escalation"
    ACTION_EXECUTED = "ai:action-executed"
    INSIGHT_GENERATED = "insight:generated"


LISTENED_EVENT_TYPES: tuple[EventType, ...] = (
    EventType.CALC_UPDATED,
    EventType.CALC_COMPLETED,
    EventType.PREDICTIVE_INSIGHT,
    EventType.TREND_DETECTED,
    EventType.FUTURE_STATE_PREDICTED,
    EventType.TEMPORAL_ANOMALY,
    EventType.EMOTION_INFERRED,
    EventType.USER_PROFILE_UPDATED,
    EventType.SIGNAL_QUALITY,
    EventType.EVOLUTION_SCORE_UPDATED,
    EventType.CONSISTENCY_WARNING,
    EventType.INTERNAL_DRIFT,
    EventType.CORE_SYNC,
)

# Everything the pipeline itself publishes, apart from the store's core-sync
EMITTED_PIPELINE_TYPES: tuple[EventType, ...] = (
    EventType.CONTRADICTION_DETECTED,
    EventType.COHERENCE_WARNING,
    EventType.DECISION_VALIDATED,
    EventType.GOVERNANCE_ALERT,
    EventType.GOVERNANCE_VIOLATION,
    EventType.PERSONALITY_ESCALATION,
    EventType.ACTION_EXECUTED,
    EventType.INSIGHT_GENERATED,
)


# ── Risk ──────────────────────────────────────────────────────────────────────


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


RISK_SCORES: dict[RiskLevel, float] = {
    RiskLevel.HIGH: 0.8,
    RiskLevel.MEDIUM: 0.5,
    RiskLevel.LOW: 0.2,
}


# ── Actions ───────────────────────────────────────────────────────────────────


class Action(BaseModel):
    """Something a collaborator wants the core to do on its behalf.

    `risk_level` is a caller-supplied hint. It is never verified against
    what the action would actually touch.
    """

    model_config = ConfigDict(extra="allow")

    type: str = "unknown"
    risk_level: RiskLevel = RiskLevel.MEDIUM


class ActionContext(BaseModel):
    model_config = ConfigDict(extra="allow")

    intent: str | None = None


class Recommendation(BaseModel):
    """An insight or warning on its way to the presentation layer."""

    model_config = ConfigDict(extra="allow")

    type: str = "insight"
    severity: str = "medium"
    message: str = ""
    values: dict[str, Any] = Field(default_factory=dict)
    trust: str | None = None
    validated_by: str | None = None
    coherence_score: float | None = None
    risk: float | None = None
