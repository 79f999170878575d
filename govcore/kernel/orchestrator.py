"""Orchestrator — reacts to domain events with a fixed governance pipeline.

For every event it listens to, the orchestrator runs, in order:

    route → patch → infer → recommend → synchronize → harmonize →
    evolve → check coherence → validate → safe action → publish

and ends by publishing `insight:generated`. It never listens to anything
it emits, and it refuses to start a second pipeline while one is in
flight, so a single inbound event can never loop back into itself.

A step that raises aborts the rest of the pipeline for that event.
State already written by earlier steps stays written.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel, Field

from govcore.coherence.engine import (
    detect_contradictions,
    generate_coherence_score,
    generate_rationale,
    validate_logic,
)
from govcore.config import settings
from govcore.events.bus import Event, EventBus, Unsubscribe
from govcore.exceptions import CyclicSubscriptionError
from govcore.governance.engine import GovernanceEngine
from govcore.governance.ledger import DecisionEntry, DecisionTimestamps, RiskAssessment
from govcore.kernel.stages import PipelineStage, PipelineStateMachine
from govcore.personality import DEFAULT_PERSONALITY, PersonalityProfile
from govcore.policy.engine import PolicyEngine
from govcore.safety.engine import ActionOutcome, SafeActionEngine
from govcore.state.models import is_number, read_number
from govcore.state.store import UnifiedStateStore
from govcore.types import (
    EMITTED_PIPELINE_TYPES,
    LISTENED_EVENT_TYPES,
    RISK_SCORES,
    STATE_STORE_SOURCE,
    Action,
    ActionContext,
    EventType,
    Payload,
    Recommendation,
    clamp,
    now_ms,
)

_logger = logging.getLogger(__name__)

SOURCE = "orchestrator"


class CoherenceReport(BaseModel):
    ok: bool
    contradictions: list[str] = Field(default_factory=list)
    coherence_score: float
    rationale: str = ""


class SafeActionPipelineResult(BaseModel):
    allowed: bool
    decision: ActionOutcome
    validated: Recommendation


class Orchestrator:
    """Composes state, coherence, governance and safe actions per event."""

    def __init__(
        self,
        bus: EventBus,
        store: UnifiedStateStore,
        governance: GovernanceEngine,
        safe_actions: SafeActionEngine,
        policy_engine: PolicyEngine,
        personality: PersonalityProfile = DEFAULT_PERSONALITY,
        listened_types: Iterable[EventType] = LISTENED_EVENT_TYPES,
        emitted_types: Iterable[EventType] = EMITTED_PIPELINE_TYPES,
        conflicts_limit: int | None = None,
    ) -> None:
        self.bus = bus
        self.store = store
        self.governance = governance
        self.safe_actions = safe_actions
        self.policy_engine = policy_engine
        self.personality = personality
        self.stages = PipelineStateMachine()
        self._listened = tuple(listened_types)
        self._emitted = tuple(emitted_types)
        self._conflicts_limit = (
            settings.conflicts_limit if conflicts_limit is None else conflicts_limit
        )
        self._unsubscribes: list[Unsubscribe] = []
        self._initialized = False
        self._patchers: dict[EventType, Callable[[Payload], dict[str, Any] | None]] = {
            EventType.CALC_UPDATED: self._patch_calculation,
            EventType.CALC_COMPLETED: self._patch_calculation,
            EventType.PREDICTIVE_INSIGHT: self._patch_predictive_insight,
            EventType.TREND_DETECTED: self._patch_trend,
            EventType.FUTURE_STATE_PREDICTED: self._patch_forecast,
            EventType.TEMPORAL_ANOMALY: self._patch_anomaly,
            EventType.EMOTION_INFERRED: self._patch_emotion,
            EventType.USER_PROFILE_UPDATED: self._patch_user_profile,
            EventType.SIGNAL_QUALITY: self._patch_signal_quality,
            EventType.EVOLUTION_SCORE_UPDATED: self._patch_evolution_score,
            EventType.CONSISTENCY_WARNING: self._patch_consistency_warning,
            EventType.INTERNAL_DRIFT: self._patch_drift,
            EventType.CORE_SYNC: self._patch_cognitive_map,
        }
        self.apply_personality()

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> bool:
        """Subscribe to every listened event type.

        Returns False, and changes nothing, when already initialized.
        """
        if self.initialized:
            _logger.warning("Orchestrator already initialized; ignoring repeated call")
            return False

        overlap = set(self._listened) & set(self._emitted)
        if overlap:
            raise CyclicSubscriptionError(
                "Orchestrator would listen to its own output: "
                + ", ".join(sorted(t.value for t in overlap))
            )

        self._unsubscribes = [
            self.bus.subscribe(etype, self.handle_event) for etype in self._listened
        ]
        self._initialized = True
        _logger.info("Orchestrator subscribed to %d event types", len(self._unsubscribes))
        return True

    def shutdown(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        self._initialized = False

    # ── Event handling ───────────────────────────────────────────────────

    def handle_event(self, event: Event) -> Event | None:
        """Run the pipeline for one event. Returns the published insight."""
        if event.type == EventType.CORE_SYNC and event.metadata.source == STATE_STORE_SOURCE:
            return None

        if self.stages.in_flight:
            _logger.warning(
                "Dropping %s: pipeline already in flight at stage %s",
                event.type.value, self.stages.stage.value,
            )
            self.governance.ledger.log_governance_event(
                "reentrant-event-dropped",
                event_type=event.type.value,
                stage=self.stages.stage.value,
            )
            return None

        try:
            return self._run_pipeline(event)
        except Exception:
            _logger.error(
                "Pipeline aborted at stage %s for %s",
                self.stages.stage.value, event.type.value,
            )
            self.stages.abort()
            raise

    def _run_pipeline(self, event: Event) -> Event:
        stages = self.stages

        stages.transition(PipelineStage.ROUTING)
        self.store.route_event(event)

        stages.transition(PipelineStage.PATCHING)
        self._patch(event)

        stages.transition(PipelineStage.INFERRING)
        self.compute_unified_inference()

        stages.transition(PipelineStage.RECOMMENDING)
        recommendation = self.generate_unified_recommendation()

        stages.transition(PipelineStage.SYNCHRONIZING)
        self.synchronize_temporal_consistency()

        stages.transition(PipelineStage.HARMONIZING)
        self.harmonize_conflicts()

        stages.transition(PipelineStage.EVOLVING)
        self.run_self_evolution_step()

        stages.transition(PipelineStage.CHECKING_COHERENCE)
        report = self.run_coherence_check(event)

        stages.transition(PipelineStage.VALIDATING)
        validated = self.governance.validate_recommendation(
            Recommendation(type="insight", severity="medium", message=recommendation)
        )

        stages.transition(PipelineStage.SAFE_ACTION)
        result = self.run_safe_action_pipeline(
            Action(type="recommendation", message=recommendation),
            ActionContext(intent="insight", source_event=event.type.value),
            budgeted=False,
        )

        stages.transition(PipelineStage.PUBLISHING)
        insight = self._publish_insight(event, validated, report, result)

        stages.transition(PipelineStage.IDLE)
        return insight

    def _patch(self, event: Event) -> None:
        patcher = self._patchers.get(event.type)
        if patcher is None:
            return
        partial = patcher(event.payload)
        if partial:
            self.store.update_state(partial, extra={"patched_by": event.type.value})

    # ── Per-event patches ────────────────────────────────────────────────

    def _patch_calculation(self, payload: Payload) -> dict[str, Any]:
        operational: dict[str, Any] = {"last_calculation": dict(payload)}
        for key in ("global_confidence", "load"):
            if key in payload:
                operational[key] = payload[key]
        return {"operational": operational}

    def _patch_predictive_insight(self, payload: Payload) -> dict[str, Any]:
        partial: dict[str, Any] = {"opportunity": {"last_insight": dict(payload)}}
        if "signal" in payload:
            partial["opportunity"]["signal"] = payload["signal"]
        if "risk_level" in payload:
            partial["risk"] = {"level": payload["risk_level"]}
        return partial

    def _patch_trend(self, payload: Payload) -> dict[str, Any] | None:
        if "trend" not in payload:
            return None
        return {"temporal": {"trend": payload["trend"]}}

    def _patch_forecast(self, payload: Payload) -> dict[str, Any]:
        return {"temporal": {"forecast": dict(payload)}}

    def _patch_anomaly(self, payload: Payload) -> dict[str, Any]:
        return {"temporal": {"anomaly": dict(payload)}}

    def _patch_emotion(self, payload: Payload) -> dict[str, Any]:
        return {"social": {"emotion": payload.get("emotion", dict(payload))}}

    def _patch_user_profile(self, payload: Payload) -> dict[str, Any]:
        return {"contextual": {"user_profile": dict(payload)}}

    def _patch_signal_quality(self, payload: Payload) -> dict[str, Any]:
        operational: dict[str, Any] = {"signal_quality": payload.get("quality", dict(payload))}
        if "global_confidence" in payload:
            operational["global_confidence"] = payload["global_confidence"]
        return {"operational": operational}

    def _patch_evolution_score(self, payload: Payload) -> dict[str, Any] | None:
        if "evolution_score" not in payload:
            return None
        return {"evolution": {"evolution_score": payload["evolution_score"]}}

    def _patch_consistency_warning(self, payload: Payload) -> dict[str, Any]:
        conflicts = self.store.section("consistency").get("conflicts")
        conflicts = list(conflicts) if isinstance(conflicts, list) else []
        conflicts.append(dict(payload))
        # Oldest conflicts fall off, like the bounded ledger logs
        conflicts = conflicts[-self._conflicts_limit:] if self._conflicts_limit > 0 else []
        return {"consistency": {"conflicts": conflicts}}

    def _patch_drift(self, payload: Payload) -> dict[str, Any]:
        return {"consistency": {"drift": True, "last_drift": dict(payload)}}

    def _patch_cognitive_map(self, payload: Payload) -> None:
        self.update_cognitive_map(payload)
        return None

    # ── Pipeline steps ───────────────────────────────────────────────────

    def compute_unified_inference(self) -> float:
        operational = self.store.section("operational")
        evolution = self.store.section("evolution")
        confidence = clamp(
            0.5
            + read_number(operational, "global_confidence") * 0.2
            + read_number(evolution, "evolution_score") * 0.2
        )
        self.store.update_state({"confidence": confidence})
        return confidence

    def generate_unified_recommendation(self) -> str:
        trend = self.store.section("temporal").get("trend")
        recommendation = f"Act on trend: {trend}" if trend else "Monitor current context"
        self.store.update_state(
            {"last_recommendation": recommendation},
            extra={"recommendation": recommendation},
        )
        return recommendation

    def synchronize_temporal_consistency(self) -> None:
        # Hook only: temporal signals are not realigned yet
        self.store.update_state({}, extra={"sync": "temporal"})

    def harmonize_conflicts(self) -> float:
        conflicts = self.store.section("consistency").get("conflicts")
        count = len(conflicts) if isinstance(conflicts, list) else 0
        health = self.store.get_state().health_score
        if count > 0:
            new_health = clamp((health or 0.6) - 0.1 * count)
        else:
            new_health = clamp((health or 0.7) + 0.05)
        self.store.update_state({"health_score": new_health}, extra={"harmonized": True})
        return new_health

    def run_self_evolution_step(self) -> float:
        state = self.store.get_state()
        health = 0.7 if state.health_score is None else state.health_score
        evolution = read_number(state.evolution, "evolution_score", default=0.6)
        new_score = clamp((health + evolution) / 2)
        self.store.update_state(
            {"health_score": new_score, "system_health_score": new_score},
            extra={"evolution_score": new_score},
        )
        return new_score

    def run_coherence_check(self, event: Event | None = None) -> CoherenceReport:
        snapshot = self.store.get_state()
        contradictions = detect_contradictions(snapshot)
        score = generate_coherence_score(contradictions)
        if event is not None:
            rationale = generate_rationale(event.type.value, event.payload)
        else:
            rationale = generate_rationale(EventType.CORE_SYNC.value)
        self.governance.record_coherence_check(contradictions, score, rationale)
        return CoherenceReport(
            ok=validate_logic(snapshot),
            contradictions=contradictions,
            coherence_score=score,
            rationale=rationale,
        )

    def update_cognitive_map(self, snapshot: Mapping[str, Any]) -> None:
        """Take in a mind snapshot published by another component.

        Malformed fields are dropped: a non-mapping `state` reads as None,
        non-numeric confidences are skipped and a non-numeric
        `health_score` leaves health untouched.
        """
        mind = snapshot.get("state")
        confidences = snapshot.get("confidence_map")
        partial: dict[str, Any] = {
            "mind_snapshot": dict(mind) if isinstance(mind, Mapping) else None,
            "confidence_map": None,
        }
        if isinstance(confidences, Mapping):
            partial["confidence_map"] = {
                str(key): float(value)
                for key, value in confidences.items()
                if is_number(value)
            }
        health = snapshot.get("health_score")
        if is_number(health):
            partial["health_score"] = health
            partial["system_health_score"] = health
        self.store.update_state(partial, extra={"snapshot": dict(snapshot)})

    def apply_personality(self) -> None:
        self.store.update_state({
            "personality_risk_attitude": self.personality.risk_attitude,
            "opportunity_bias": self.personality.opportunity_bias,
            "decision_style": self.personality.decision_style(),
        })

    # ── Safe actions ─────────────────────────────────────────────────────

    def run_safe_action_pipeline(
        self,
        action: Action,
        context: ActionContext,
        budgeted: bool = True,
    ) -> SafeActionPipelineResult:
        """Policy, risk, ledger, violation check and validation for one action.

        Only budgeted actions count toward the daily action limit.
        """
        requested = now_ms()
        verdict = self.policy_engine.evaluate(action)
        safe = self.safe_actions.execute(action, context, budgeted=budgeted)
        allowed = verdict.allowed and safe.approved

        if allowed:
            decision = self.safe_actions.apply(action, budgeted=budgeted)
        else:
            decision = ActionOutcome(
                success=False,
                action_type=action.type,
                reason=verdict.reason or safe.reason,
            )

        self.governance.ledger.register_decision(
            DecisionEntry(
                intent=context.intent,
                action=action.model_dump(mode="json"),
                policy={
                    "forbidden_actions": [] if verdict.allowed else [action.type],
                    "rules": self.policy_engine.policy.snapshot(),
                },
                risk=RiskAssessment(
                    level=safe.risk_level.value,
                    score=RISK_SCORES[safe.risk_level],
                ),
                decision=decision.model_dump(mode="json"),
                timestamps=DecisionTimestamps(requested=requested, decided=now_ms()),
            )
        )

        self.governance.detect_governance_violations(
            action, self.policy_engine.forbidden_for(action)
        )

        validated = self.governance.validate_recommendation(
            Recommendation(
                type="insight" if allowed else "warning",
                severity="medium" if allowed else "high",
                message=(
                    "Action approved and executed safely."
                    if allowed
                    else "Action blocked by policy."
                ),
                values={"allowed": allowed},
            )
        )
        self.governance.explain_decision(validated)

        return SafeActionPipelineResult(allowed=allowed, decision=decision, validated=validated)

    # ── Output ───────────────────────────────────────────────────────────

    def _publish_insight(
        self,
        event: Event,
        validated: Recommendation,
        report: CoherenceReport,
        result: SafeActionPipelineResult,
    ) -> Event:
        severity = validated.severity
        message = validated.message

        if not result.allowed:
            severity = "high"
            message = f"Insight blocked: {result.decision.reason}"
            self.bus.publish(
                EventType.PERSONALITY_ESCALATION,
                {
                    "risk_attitude": self.personality.risk_attitude,
                    "reason": result.decision.reason,
                    "source_event": event.type.value,
                },
                source=SOURCE,
                priority=8,
            )

        state = self.store.get_state()
        return self.bus.publish(
            EventType.INSIGHT_GENERATED,
            {
                "type": validated.type,
                "severity": severity,
                "message": message,
                "trust": validated.trust,
                "confidence": state.confidence,
                "health_score": state.health_score,
                "coherence_score": report.coherence_score,
                "contradictions": report.contradictions,
                "source_event": event.type.value,
            },
            source=SOURCE,
            priority=7,
        )
