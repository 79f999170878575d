"""Tests for the governance ledger."""

from govcore.governance.ledger import (
    DECISION_SIGNATURE,
    BoundedLog,
    DecisionEntry,
    DecisionTimestamps,
    GovernanceLedger,
)


def test_bounded_log_evicts_oldest():
    log = BoundedLog(3)
    for i in range(5):
        log.append(i)

    assert len(log) == 3
    assert log.capacity == 3
    assert list(log) == [2, 3, 4]
    assert log.last(2) == [3, 4]
    assert log.last(10) == [2, 3, 4]
    assert log.last(0) == []


def test_register_decision_stamps_a_copy():
    ledger = GovernanceLedger()
    entry = DecisionEntry(intent="test", action={"type": "read"})

    stamped = ledger.register_decision(entry)

    assert stamped.signature == DECISION_SIGNATURE
    assert stamped.timestamps is not None
    assert entry.signature == ""
    assert entry.timestamps is None


def test_register_decision_keeps_given_timestamps():
    ledger = GovernanceLedger()
    stamped = ledger.register_decision(
        DecisionEntry(timestamps=DecisionTimestamps(requested=1, decided=2))
    )
    assert stamped.timestamps.requested == 1
    assert stamped.timestamps.decided == 2


def test_audit_last_decisions():
    ledger = GovernanceLedger()
    for i in range(5):
        ledger.register_decision(DecisionEntry(intent=f"i{i}"))

    assert [d.intent for d in ledger.audit_last_decisions(3)] == ["i2", "i3", "i4"]
    assert len(ledger.audit_last_decisions()) == 5


def test_decision_ledger_cap():
    ledger = GovernanceLedger()
    for i in range(130):
        ledger.register_decision(DecisionEntry(intent=f"i{i}"))

    decisions = ledger.audit_last_decisions(1000)
    assert len(decisions) == 100
    assert decisions[0].intent == "i30"
    assert decisions[-1].intent == "i129"


def test_bounded_logs_cap():
    ledger = GovernanceLedger()
    for i in range(250):
        ledger.log_contradiction(["c"], n=i)
        ledger.log_justification("decision", n=i)
        ledger.log_coherence(0.5, n=i)
        ledger.log_governance_event("kind", n=i)

    for log in (
        ledger.contradictions,
        ledger.justifications,
        ledger.coherence_scores,
        ledger.governance_events,
    ):
        assert len(log) == 200
        assert log.last(1)[0].data["n"] == 249
        assert next(iter(log)).data["n"] == 50


def test_custom_limits():
    ledger = GovernanceLedger(log_limit=2, decision_limit=1)
    ledger.register_decision(DecisionEntry(intent="a"))
    ledger.register_decision(DecisionEntry(intent="b"))
    for i in range(3):
        ledger.log_coherence(0.1 * i)

    assert [d.intent for d in ledger.audit_last_decisions()] == ["b"]
    assert len(ledger.coherence_scores) == 2


def test_log_entry_shapes():
    ledger = GovernanceLedger()
    c = ledger.log_contradiction(["x", "y"], rationale="why")
    s = ledger.log_coherence(0.65, source="check")

    assert c.kind == "contradiction"
    assert c.data == {"contradictions": ["x", "y"], "rationale": "why"}
    assert s.data == {"score": 0.65, "source": "check"}
    assert c.timestamp > 0
    assert "decisions=0" in repr(ledger)


def test_zero_limits_are_respected():
    ledger = GovernanceLedger(log_limit=0, decision_limit=0)
    ledger.register_decision(DecisionEntry(intent="a"))
    ledger.log_governance_event("kind")

    assert ledger.audit_last_decisions() == []
    assert len(ledger.governance_events) == 0
