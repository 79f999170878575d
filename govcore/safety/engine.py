"""Safe-Action Engine: policy plus risk, before anything runs.

Policy compliance is necessary but not sufficient: an action the policy
allows is still refused when its caller flags it as high risk, or once
the daily action budget is spent.

`apply()` is a simulated executor. It records and announces the action;
the real side effect belongs to whoever consumes `ai:action-executed`.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field

from govcore.events.bus import EventBus
from govcore.governance.ledger import GovernanceLedger
from govcore.policy.engine import PolicyEngine
from govcore.types import Action, ActionContext, EventType, RiskLevel, now_ms

_logger = logging.getLogger(__name__)

HIGH_RISK_REASON = "predicted high risk"
DAILY_LIMIT_REASON = "daily action limit reached"
SOURCE = "safe-action-engine"


class SafeActionResult(BaseModel):
    approved: bool
    reason: str | None = None
    risk_level: RiskLevel = RiskLevel.MEDIUM


class ActionOutcome(BaseModel):
    success: bool
    action_type: str = "unknown"
    reason: str | None = None
    executed_at: int | None = None


class SafeActionEngine:
    """Approves or refuses actions, and simulates applying approved ones."""

    def __init__(
        self,
        policy_engine: PolicyEngine,
        ledger: GovernanceLedger,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._policy = policy_engine
        self._ledger = ledger
        self._bus = bus
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._day: date | None = None
        self._applied_today = 0

    def execute(
        self,
        action: Action,
        context: ActionContext,
        budgeted: bool = True,
    ) -> SafeActionResult:
        """Decide whether `action` may run. Never raises for a refusal.

        Unbudgeted actions skip the daily limit; the orchestrator's own
        insight screening runs unbudgeted.
        """
        verdict = self._policy.evaluate(action)
        if not verdict.allowed:
            _logger.info(
                "Action '%s' denied by policy: %s (intent=%s)",
                action.type, verdict.reason, context.intent,
            )
            return SafeActionResult(
                approved=False, reason=verdict.reason, risk_level=RiskLevel.HIGH,
            )

        if action.risk_level == RiskLevel.HIGH:
            _logger.info("Action '%s' denied: %s", action.type, HIGH_RISK_REASON)
            return SafeActionResult(
                approved=False, reason=HIGH_RISK_REASON, risk_level=RiskLevel.HIGH,
            )

        if budgeted and self.applied_today >= self._policy.policy.max_daily_actions:
            _logger.warning(
                "Action '%s' denied: %d actions already applied today",
                action.type, self._applied_today,
            )
            return SafeActionResult(
                approved=False, reason=DAILY_LIMIT_REASON, risk_level=action.risk_level,
            )

        return SafeActionResult(approved=True, risk_level=action.risk_level)

    def apply(self, action: Action, budgeted: bool = True) -> ActionOutcome:
        """Record an approved action as executed."""
        if budgeted:
            self._roll_day()
            self._applied_today += 1
        outcome = ActionOutcome(
            success=True, action_type=action.type, executed_at=now_ms(),
        )
        self._ledger.log_governance_event(
            "action-applied", action=action.model_dump(mode="json"),
        )
        self._ledger.log_justification(
            "action-applied",
            action_type=action.type,
            reason="approved by policy and risk screening",
        )
        if self._bus is not None:
            self._bus.publish(
                EventType.ACTION_EXECUTED,
                {
                    "action": action.model_dump(mode="json"),
                    "outcome": outcome.model_dump(mode="json"),
                },
                source=SOURCE,
                priority=6,
            )
        return outcome

    @property
    def applied_today(self) -> int:
        self._roll_day()
        return self._applied_today

    def _roll_day(self) -> None:
        today = self._clock().date()
        if today != self._day:
            self._day = today
            self._applied_today = 0
