"""Built-in personality profile.

Not loaded from YAML or a database: a Python-native, frozen definition
that the orchestrator reads once to flavour state with a risk attitude,
an opportunity bias and a decision style.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ToneStyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategic: bool = True
    concise: bool = True
    friendly: bool = True


class PersonalityProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    traits: dict[str, float] = Field(default_factory=dict)
    risk_attitude: str = "balanced"  # "cautious", "balanced", "bold"
    opportunity_bias: float = Field(default=0.5, ge=0.0, le=1.0)
    tone_style: ToneStyle = Field(default_factory=ToneStyle)

    def decision_style(self) -> str:
        parts = [
            label
            for label, enabled in (
                ("strategic", self.tone_style.strategic),
                ("concise", self.tone_style.concise),
                ("friendly", self.tone_style.friendly),
            )
            if enabled
        ]
        return " / ".join(parts)


ADVISOR = PersonalityProfile(
    name="advisor",
    traits={"curiosity": 0.6, "caution": 0.7, "empathy": 0.8},
    risk_attitude="cautious",
    opportunity_bias=0.4,
)

OPERATOR = PersonalityProfile(
    name="operator",
    traits={"curiosity": 0.4, "caution": 0.5, "empathy": 0.5},
    risk_attitude="balanced",
    opportunity_bias=0.6,
    tone_style=ToneStyle(strategic=True, concise=True, friendly=False),
)

# Lookup table
PERSONALITIES = {
    "advisor": ADVISOR,
    "operator": OPERATOR,
}

DEFAULT_PERSONALITY = ADVISOR
