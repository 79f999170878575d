"""Composition root. Builds and holds every subsystem of one core.

There are no module-level singletons: each `GovernanceCore` owns its own
bus, store, ledger and engines, so independent cores (one per test, one
per tenant) never see each other's state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping

from govcore.config import GovcoreSettings, settings
from govcore.events.bus import Event, EventBus
from govcore.governance.engine import GovernanceEngine
from govcore.governance.ledger import GovernanceLedger
from govcore.kernel.orchestrator import Orchestrator, SafeActionPipelineResult
from govcore.personality import DEFAULT_PERSONALITY, PersonalityProfile
from govcore.policy.engine import PolicyEngine
from govcore.policy.schema import Policy
from govcore.safety.engine import SafeActionEngine
from govcore.state.models import UnifiedState
from govcore.state.store import UnifiedStateStore
from govcore.types import Action, ActionContext, EventType, Payload


class GovernanceCore:
    """Holds all subsystem instances and exposes the external function surface.

    Usage:
        core = GovernanceCore()
        core.initialize_integrated_orchestrator()
        core.publish("ai:trend-detected", {"trend": "growth"})
        core.get_global_state().last_recommendation   # "Act on trend: growth"
    """

    def __init__(
        self,
        policy: Policy | None = None,
        personality: PersonalityProfile | None = None,
        config: GovcoreSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        cfg = config or settings
        self.config = cfg
        self.bus = EventBus(
            history_limit=cfg.event_history_limit,
            max_dispatch_depth=cfg.max_dispatch_depth,
        )
        self.store = UnifiedStateStore(self.bus, last_events_limit=cfg.last_events_limit)
        self.ledger = GovernanceLedger(
            log_limit=cfg.governance_log_limit,
            decision_limit=cfg.decision_ledger_limit,
        )
        self.policy_engine = PolicyEngine(
            policy or Policy(max_daily_actions=cfg.max_daily_actions)
        )
        self.governance = GovernanceEngine(
            self.ledger,
            bus=self.bus,
            store=self.store,
            coherence_threshold=cfg.coherence_threshold,
            risk_threshold=cfg.risk_threshold,
        )
        self.safe_actions = SafeActionEngine(
            self.policy_engine, self.ledger, bus=self.bus, clock=clock,
        )
        self.orchestrator = Orchestrator(
            self.bus,
            self.store,
            self.governance,
            self.safe_actions,
            self.policy_engine,
            personality=personality or DEFAULT_PERSONALITY,
            conflicts_limit=cfg.conflicts_limit,
        )

    def initialize_integrated_orchestrator(self) -> bool:
        """Wire the orchestrator to the bus. Repeated calls are no-ops."""
        return self.orchestrator.initialize()

    def run_safe_action_pipeline(
        self,
        action: Action | Mapping[str, Any],
        context: ActionContext | Mapping[str, Any] | None = None,
    ) -> SafeActionPipelineResult:
        if not isinstance(action, Action):
            action = Action.model_validate(dict(action))
        if not isinstance(context, ActionContext):
            context = ActionContext.model_validate(dict(context or {}))
        return self.orchestrator.run_safe_action_pipeline(action, context)

    def get_global_state(self) -> UnifiedState:
        return self.store.get_state()

    def update_global_state(self, partial: Mapping[str, Any]) -> None:
        self.store.update_state(partial)

    def publish(
        self,
        event_type: EventType | str,
        payload: Payload | None = None,
        source: str = "external",
        priority: int = 5,
    ) -> Event:
        """Publish a domain event on this core's bus."""
        return self.bus.publish(event_type, payload, source=source, priority=priority)

    def last_insight(self) -> Event | None:
        insights = self.bus.history(limit=1, type_filter=EventType.INSIGHT_GENERATED)
        return insights[0] if insights else None
