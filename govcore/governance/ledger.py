"""Append-only, bounded governance audit record.

Every action attempt lands in the decision ledger. Contradictions,
justifications, coherence scores and governance events each get their
own log. Entries are never modified; the only removal is eviction of
the oldest entry once a log is full.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Generic, Iterator, TypeVar

from pydantic import BaseModel, Field

from govcore.config import settings
from govcore.types import now_ms

T = TypeVar("T")

DECISION_SIGNATURE = "govcore-conscious-layer"


class BoundedLog(Generic[T]):
    """Fixed-capacity FIFO. Appending to a full log drops the oldest entry."""

    def __init__(self, capacity: int) -> None:
        self._entries: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: T) -> None:
        self._entries.append(entry)

    def last(self, limit: int) -> list[T]:
        """The `limit` most recent entries, oldest first."""
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries))


class LogEntry(BaseModel):
    kind: str
    timestamp: int = Field(default_factory=now_ms)
    data: dict[str, Any] = Field(default_factory=dict)


class RiskAssessment(BaseModel):
    level: str = "medium"
    score: float = 0.5


class DecisionTimestamps(BaseModel):
    requested: int
    decided: int


class DecisionEntry(BaseModel):
    """A single action attempt and what became of it."""

    intent: str | None = None
    action: dict[str, Any] = Field(default_factory=dict)
    policy: dict[str, Any] = Field(default_factory=dict)
    risk: RiskAssessment = Field(default_factory=RiskAssessment)
    decision: dict[str, Any] = Field(default_factory=dict)
    timestamps: DecisionTimestamps | None = None
    signature: str = ""


class GovernanceLedger:
    """The four bounded logs plus the decision ledger."""

    def __init__(
        self,
        log_limit: int | None = None,
        decision_limit: int | None = None,
    ) -> None:
        if log_limit is None:
            log_limit = settings.governance_log_limit
        if decision_limit is None:
            decision_limit = settings.decision_ledger_limit
        self.contradictions: BoundedLog[LogEntry] = BoundedLog(log_limit)
        self.justifications: BoundedLog[LogEntry] = BoundedLog(log_limit)
        self.coherence_scores: BoundedLog[LogEntry] = BoundedLog(log_limit)
        self.governance_events: BoundedLog[LogEntry] = BoundedLog(log_limit)
        self.decisions: BoundedLog[DecisionEntry] = BoundedLog(decision_limit)

    def register_decision(self, entry: DecisionEntry) -> DecisionEntry:
        """Stamp and append. The caller's entry is left untouched."""
        now = now_ms()
        stamped = entry.model_copy(
            update={
                "timestamps": entry.timestamps
                or DecisionTimestamps(requested=now, decided=now),
                "signature": DECISION_SIGNATURE,
            },
            deep=True,
        )
        self.decisions.append(stamped)
        return stamped

    def audit_last_decisions(self, limit: int = 50) -> list[DecisionEntry]:
        return self.decisions.last(limit)

    def log_contradiction(self, contradictions: list[str], **data: Any) -> LogEntry:
        entry = LogEntry(kind="contradiction", data={"contradictions": list(contradictions), **data})
        self.contradictions.append(entry)
        return entry

    def log_justification(self, kind: str, **data: Any) -> LogEntry:
        entry = LogEntry(kind=kind, data=data)
        self.justifications.append(entry)
        return entry

    def log_coherence(self, score: float, **data: Any) -> LogEntry:
        entry = LogEntry(kind="coherence", data={"score": score, **data})
        self.coherence_scores.append(entry)
        return entry

    def log_governance_event(self, kind: str, **data: Any) -> LogEntry:
        entry = LogEntry(kind=kind, data=data)
        self.governance_events.append(entry)
        return entry

    def __repr__(self) -> str:
        return (
            f"GovernanceLedger(decisions={len(self.decisions)}, "
            f"governance_events={len(self.governance_events)})"
        )
