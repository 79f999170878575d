"""Tests for the composition root and its external surface."""

import pytest

from govcore.config import GovcoreSettings
from govcore.core import GovernanceCore
from govcore.exceptions import UnknownEventTypeError
from govcore.policy.engine import FORBIDDEN_REASON
from govcore.types import Action, ActionContext, EventType


def test_forbidden_action_is_blocked():
    core = GovernanceCore()
    result = core.run_safe_action_pipeline({"type": "delete"}, {"intent": "test"})

    assert result.allowed is False
    assert result.decision.success is False
    assert result.decision.reason == FORBIDDEN_REASON
    assert result.validated.type == "warning"
    assert result.validated.message == "Action blocked by policy."


def test_plain_read_is_allowed():
    core = GovernanceCore()
    result = core.run_safe_action_pipeline({"type": "read"}, {"intent": "test"})

    assert result.allowed is True
    assert result.decision.success is True
    assert result.decision.executed_at is not None
    assert result.validated.type == "insight"
    assert result.validated.trust == "high"
    assert result.validated.values == {"allowed": True}


def test_accepts_models_and_missing_context():
    core = GovernanceCore()
    assert core.run_safe_action_pipeline(Action(type="read"), ActionContext(intent="x")).allowed
    assert core.run_safe_action_pipeline({"type": "read"}).allowed


def test_every_attempt_is_in_the_ledger():
    core = GovernanceCore()
    core.run_safe_action_pipeline({"type": "read"}, {"intent": "look"})
    core.run_safe_action_pipeline({"type": "delete"}, {"intent": "purge"})

    first, second = core.ledger.audit_last_decisions(10)
    assert first.intent == "look"
    assert first.decision["success"] is True
    assert first.policy["forbidden_actions"] == []
    assert first.policy["rules"]["max_daily_actions"] == 1000
    assert first.risk.level == "medium"
    assert first.risk.score == 0.5
    assert first.timestamps.decided >= first.timestamps.requested
    assert first.signature
    assert second.intent == "purge"
    assert second.decision["success"] is False
    assert second.policy["forbidden_actions"] == ["delete"]


def test_violation_is_announced(sink_factory):
    core = GovernanceCore()
    sink = sink_factory(core.bus, EventType.GOVERNANCE_VIOLATION, EventType.ACTION_EXECUTED)

    core.run_safe_action_pipeline({"type": "delete"}, {"intent": "test"})
    core.run_safe_action_pipeline({"type": "read"}, {"intent": "test"})

    assert sink.types == ["ai:governance-violation", "ai:action-executed"]


def test_ledger_caps():
    core = GovernanceCore()
    for _ in range(250):
        core.run_safe_action_pipeline({"type": "read"}, {"intent": "test"})

    assert len(core.ledger.audit_last_decisions(1000)) == 100
    assert len(core.ledger.coherence_scores) == 200
    assert len(core.ledger.governance_events) == 200
    assert len(core.ledger.justifications) == 200


def test_daily_limit_from_config():
    core = GovernanceCore(config=GovcoreSettings(max_daily_actions=1))
    assert core.run_safe_action_pipeline({"type": "read"}).allowed is True
    second = core.run_safe_action_pipeline({"type": "read"})
    assert second.allowed is False
    assert second.decision.reason == "daily action limit reached"


def test_global_state_round_trip():
    core = GovernanceCore()
    core.update_global_state({"risk": {"level": "high"}, "confidence": 3})

    state = core.get_global_state()
    assert state.risk == {"level": "high"}
    assert state.confidence == 1.0


def test_cores_are_isolated():
    a = GovernanceCore()
    b = GovernanceCore()
    a.initialize_integrated_orchestrator()
    b.initialize_integrated_orchestrator()

    a.publish("ai:trend-detected", {"trend": "growth"})

    assert a.get_global_state().last_recommendation == "Act on trend: growth"
    assert b.get_global_state().last_recommendation is None
    assert b.last_insight() is None
    assert len(b.ledger.decisions) == 0


def test_config_limits_are_applied():
    core = GovernanceCore(config=GovcoreSettings(last_events_limit=2))
    core.initialize_integrated_orchestrator()
    for trend in ("a", "b", "c"):
        core.publish("ai:trend-detected", {"trend": trend})

    assert len(core.get_global_state().last_events) == 2


def test_publish_rejects_unknown_types(core):
    with pytest.raises(UnknownEventTypeError):
        core.publish("ai:made-up")


def test_last_insight(core):
    assert core.last_insight() is None
    core.publish("ai:trend-detected", {"trend": "growth"})
    assert core.last_insight().type == EventType.INSIGHT_GENERATED
