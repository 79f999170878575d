"""Recommendation validation: the conscious layer over the ledger.

Validates recommendations against the current coherence and systemic
risk, flags governance violations, and keeps the justification trail.
Each check both writes to the ledger and announces itself on the bus.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from govcore.coherence.engine import (
    detect_contradictions,
    generate_coherence_score,
    predict_system_risk,
)
from govcore.config import settings
from govcore.events.bus import EventBus
from govcore.governance.ledger import GovernanceLedger, LogEntry
from govcore.state.models import UnifiedState
from govcore.state.store import UnifiedStateStore
from govcore.types import Action, EventType, Recommendation

_logger = logging.getLogger(__name__)

VALIDATOR_NAME = "ConsciousLayer"
FALLBACK_MESSAGE = (
    "Recommendation withheld: internal state is incoherent or systemic risk is too high."
)
SOURCE = "governance-engine"


def fallback_recommendation() -> Recommendation:
    return Recommendation(
        type="warning",
        severity="high",
        message=FALLBACK_MESSAGE,
        trust="low",
        validated_by=VALIDATOR_NAME,
    )


class GovernanceEngine:
    """Gatekeeper between derived insights and the outside world."""

    def __init__(
        self,
        ledger: GovernanceLedger,
        bus: EventBus | None = None,
        store: UnifiedStateStore | None = None,
        coherence_threshold: float | None = None,
        risk_threshold: float | None = None,
    ) -> None:
        self.ledger = ledger
        self._bus = bus
        self._store = store
        self._coherence_threshold = (
            settings.coherence_threshold if coherence_threshold is None else coherence_threshold
        )
        self._risk_threshold = settings.risk_threshold if risk_threshold is None else risk_threshold

    def _publish(self, event_type: EventType, payload: dict[str, Any], priority: int = 5) -> None:
        if self._bus is not None:
            self._bus.publish(event_type, payload, source=SOURCE, priority=priority)

    def _snapshot(self, state: UnifiedState | dict | None) -> UnifiedState | dict:
        if state is not None:
            return state
        if self._store is not None:
            return self._store.get_state()
        return UnifiedState()

    def validate_recommendation(
        self,
        recommendation: Recommendation,
        state: UnifiedState | dict | None = None,
    ) -> Recommendation:
        """Pass the recommendation through, or swap in the fixed warning.

        Approved only if coherence is above the threshold and systemic
        risk below its own. Without an explicit `state` the store's
        current snapshot is used.
        """
        snapshot = self._snapshot(state)
        contradictions = detect_contradictions(snapshot)
        coherence = generate_coherence_score(contradictions)
        risk = predict_system_risk(snapshot)
        self.ledger.log_coherence(coherence, risk=risk, source="validation")

        if coherence > self._coherence_threshold and risk < self._risk_threshold:
            validated = recommendation.model_copy(
                update={
                    "validated_by": VALIDATOR_NAME,
                    "trust": "high",
                    "coherence_score": coherence,
                    "risk": risk,
                }
            )
            self.ledger.log_governance_event(
                "decision-validated", type=validated.type, coherence=coherence, risk=risk,
            )
            self._publish(
                EventType.DECISION_VALIDATED,
                {"recommendation": validated.model_dump(mode="json")},
            )
            return validated

        _logger.warning(
            "Recommendation rejected (coherence=%.2f, risk=%.2f)", coherence, risk,
        )
        self.ledger.log_governance_event(
            "recommendation-rejected",
            type=recommendation.type,
            coherence=coherence,
            risk=risk,
            contradictions=contradictions,
        )
        self._publish(
            EventType.GOVERNANCE_ALERT,
            {
                "reason": "low coherence or high systemic risk",
                "coherence_score": coherence,
                "risk": risk,
                "contradictions": contradictions,
            },
            priority=8,
        )
        return fallback_recommendation()

    def detect_governance_violations(self, action: Action, forbidden: Sequence[str]) -> list[str]:
        """Forbidden types this action runs into. Announced when non-empty."""
        violations = [name for name in forbidden if name == action.type]
        if violations:
            _logger.warning("Governance violation: action '%s' is forbidden", action.type)
            self.ledger.log_governance_event(
                "governance-violation", action=action.model_dump(mode="json"), violations=violations,
            )
            self._publish(
                EventType.GOVERNANCE_VIOLATION,
                {"action": action.model_dump(mode="json"), "violations": violations},
                priority=9,
            )
        return violations

    def record_coherence_check(
        self,
        contradictions: Sequence[str],
        score: float,
        rationale: str = "",
    ) -> None:
        self.ledger.log_coherence(score, source="coherence-check")
        if contradictions:
            self.ledger.log_contradiction(list(contradictions), rationale=rationale)
            self._publish(
                EventType.CONTRADICTION_DETECTED,
                {"contradictions": list(contradictions), "coherence_score": score},
                priority=7,
            )
        if score <= self._coherence_threshold:
            self._publish(
                EventType.COHERENCE_WARNING,
                {"coherence_score": score, "contradictions": list(contradictions)},
                priority=7,
            )

    def explain_decision(self, recommendation: Recommendation) -> LogEntry:
        return self.ledger.log_justification(
            "decision",
            type=recommendation.type,
            severity=recommendation.severity,
            message=recommendation.message,
            trust=recommendation.trust,
        )
