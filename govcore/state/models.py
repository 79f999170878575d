"""Unified state schema and its per-field merge rules."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from govcore.types import clamp


class SectionMerge(str, Enum):
    OVERLAY = "overlay"  # new keys overlay old, siblings untouched
    REPLACE = "replace"  # value swapped wholesale
    APPEND = "append"  # only grows, through route_event


class EventTrace(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    timestamp: int


SECTIONS: tuple[str, ...] = (
    "risk",
    "opportunity",
    "temporal",
    "evolution",
    "operational",
    "consistency",
    "contextual",
    "cognitive",
    "social",
    "meta",
)

CLAMPED_FIELDS: tuple[str, ...] = (
    "confidence",
    "health_score",
    "system_health_score",
    "opportunity_bias",
)

MERGE_RULES: dict[str, SectionMerge] = {
    **{name: SectionMerge.OVERLAY for name in SECTIONS},
    **{name: SectionMerge.REPLACE for name in CLAMPED_FIELDS},
    "last_recommendation": SectionMerge.REPLACE,
    "personality_risk_attitude": SectionMerge.REPLACE,
    "decision_style": SectionMerge.REPLACE,
    "mind_snapshot": SectionMerge.REPLACE,
    "confidence_map": SectionMerge.REPLACE,
    "last_events": SectionMerge.APPEND,
}


class UnifiedState(BaseModel):
    """The single long-lived document the store owns.

    Sections are free-form dicts that default to empty, so readers can
    always index into them. Derived scores are clamped to [0, 1] on
    construction and on every assignment.
    """

    model_config = ConfigDict(validate_assignment=True)

    risk: dict[str, Any] = Field(default_factory=dict)
    opportunity: dict[str, Any] = Field(default_factory=dict)
    temporal: dict[str, Any] = Field(default_factory=dict)
    evolution: dict[str, Any] = Field(default_factory=dict)
    operational: dict[str, Any] = Field(default_factory=dict)
    consistency: dict[str, Any] = Field(default_factory=dict)
    contextual: dict[str, Any] = Field(default_factory=dict)
    cognitive: dict[str, Any] = Field(default_factory=dict)
    social: dict[str, Any] = Field(default_factory=dict)
    meta: dict[str, Any] = Field(default_factory=dict)

    confidence: float | None = None
    health_score: float | None = None
    system_health_score: float | None = None
    opportunity_bias: float | None = None
    last_recommendation: str | None = None
    personality_risk_attitude: str | None = None
    decision_style: str | None = None
    mind_snapshot: dict[str, Any] | None = None
    confidence_map: dict[str, float] | None = None

    last_events: list[EventTrace] = Field(default_factory=list)

    @field_validator(*SECTIONS, mode="before")
    @classmethod
    def _missing_section_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator(*CLAMPED_FIELDS)
    @classmethod
    def _clamp_score(cls, value: float | None) -> float | None:
        return None if value is None else clamp(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def read_number(section: Any, key: str, default: float = 0.0) -> float:
    """Numeric field of a section, or `default` when missing or not a number."""
    if not isinstance(section, dict):
        return default
    value = section.get(key)
    if not is_number(value):
        return default
    return float(value)
