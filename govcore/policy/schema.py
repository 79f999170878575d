"""Which action types may run, and under what terms."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Policy(BaseModel):
    """Static ruleset gating action types.

    Frozen once built: nothing at runtime may loosen or tighten it.
    """

    model_config = ConfigDict(frozen=True)

    allow_autonomous_edits: bool = False
    max_daily_actions: int = Field(default=1000, ge=0)
    forbidden_actions: frozenset[str] = Field(
        default_factory=lambda: frozenset({"delete", "drop-table", "mass-email"}),
        description="Action types that are never allowed.",
    )
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    require_user_confirmation_for: frozenset[str] = Field(
        default_factory=lambda: frozenset({"publish", "price-change"}),
        description="Action types that must wait for a human.",
    )

    def snapshot(self) -> dict:
        """JSON-friendly copy for decision records."""
        return {
            "allow_autonomous_edits": self.allow_autonomous_edits,
            "max_daily_actions": self.max_daily_actions,
            "forbidden_actions": sorted(self.forbidden_actions),
            "risk_tolerance": self.risk_tolerance.value,
            "require_user_confirmation_for": sorted(self.require_user_confirmation_for),
        }


class PolicyVerdict(BaseModel):
    allowed: bool
    reason: str | None = None
    requires_confirmation: bool = False
