"""Tests for the safe-action engine."""

from datetime import datetime, timedelta, timezone

from govcore.events.bus import EventBus
from govcore.governance.ledger import GovernanceLedger
from govcore.policy.engine import CONFIRMATION_REASON, FORBIDDEN_REASON, PolicyEngine
from govcore.policy.schema import Policy
from govcore.safety.engine import DAILY_LIMIT_REASON, HIGH_RISK_REASON, SafeActionEngine
from govcore.types import Action, ActionContext, EventType, RiskLevel


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def _engine(policy=None, bus=None, clock=None):
    ledger = GovernanceLedger()
    return SafeActionEngine(PolicyEngine(policy), ledger, bus=bus, clock=clock), ledger


def test_policy_denial_is_high_risk():
    engine, _ = _engine()
    result = engine.execute(Action(type="delete", risk_level="low"), ActionContext(intent="test"))
    assert result.approved is False
    assert result.reason == FORBIDDEN_REASON
    assert result.risk_level == RiskLevel.HIGH


def test_confirmation_is_a_refusal():
    engine, _ = _engine()
    result = engine.execute(Action(type="publish"), ActionContext())
    assert result.approved is False
    assert result.reason == CONFIRMATION_REASON


def test_high_risk_hint_denied():
    engine, _ = _engine()
    result = engine.execute(Action(type="read", risk_level="high"), ActionContext())
    assert result.approved is False
    assert result.reason == HIGH_RISK_REASON
    assert result.risk_level == RiskLevel.HIGH


def test_allowed_action_keeps_its_risk_hint():
    engine, _ = _engine()
    result = engine.execute(Action(type="read", risk_level="low"), ActionContext(intent="test"))
    assert result.approved is True
    assert result.reason is None
    assert result.risk_level == RiskLevel.LOW


def test_apply_records_and_publishes():
    bus = EventBus()
    executed = []
    bus.subscribe(EventType.ACTION_EXECUTED, executed.append)
    engine, ledger = _engine(bus=bus)

    outcome = engine.apply(Action(type="read"))

    assert outcome.success is True
    assert outcome.action_type == "read"
    assert outcome.executed_at is not None
    assert engine.applied_today == 1
    assert [e.kind for e in ledger.governance_events] == ["action-applied"]
    assert [e.kind for e in ledger.justifications] == ["action-applied"]
    assert len(executed) == 1
    assert executed[0].payload["action"]["type"] == "read"
    assert executed[0].payload["outcome"]["success"] is True


def test_daily_limit():
    clock = FakeClock()
    engine, _ = _engine(policy=Policy(max_daily_actions=2), clock=clock)
    action = Action(type="read")

    for _ in range(2):
        assert engine.execute(action, ActionContext()).approved is True
        engine.apply(action)

    result = engine.execute(action, ActionContext())
    assert result.approved is False
    assert result.reason == DAILY_LIMIT_REASON


def test_daily_limit_resets_next_day():
    clock = FakeClock()
    engine, _ = _engine(policy=Policy(max_daily_actions=1), clock=clock)
    action = Action(type="read")

    engine.apply(action)
    assert engine.execute(action, ActionContext()).approved is False

    clock.now += timedelta(days=1)
    assert engine.applied_today == 0
    assert engine.execute(action, ActionContext()).approved is True


def test_execute_does_not_count():
    engine, _ = _engine()
    engine.execute(Action(type="read"), ActionContext())
    assert engine.applied_today == 0


def test_unbudgeted_actions_ignore_and_skip_the_daily_limit():
    engine, _ = _engine(policy=Policy(max_daily_actions=1), clock=FakeClock())
    action = Action(type="recommendation")

    for _ in range(3):
        assert engine.execute(action, ActionContext(), budgeted=False).approved is True
        engine.apply(action, budgeted=False)
    assert engine.applied_today == 0

    engine.apply(Action(type="read"))
    assert engine.execute(Action(type="read"), ActionContext()).approved is False
    assert engine.execute(action, ActionContext(), budgeted=False).approved is True
