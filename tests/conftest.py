"""Shared test fixtures. Every test gets fresh, isolated cores."""

from __future__ import annotations

import pytest

from govcore.core import GovernanceCore
from govcore.events.bus import Event, EventBus
from govcore.governance.ledger import GovernanceLedger
from govcore.state.store import UnifiedStateStore


class EventSink:
    """Collects every event of the given types published on a bus."""

    def __init__(self, bus: EventBus, *event_types: str):
        self.events: list[Event] = []
        for etype in event_types:
            bus.subscribe(etype, self.events.append)

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type.value for e in self.events]


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus):
    return UnifiedStateStore(bus)


@pytest.fixture
def ledger():
    return GovernanceLedger()


@pytest.fixture
def core():
    c = GovernanceCore()
    c.initialize_integrated_orchestrator()
    return c


@pytest.fixture
def sink_factory():
    def _factory(bus: EventBus, *event_types: str) -> EventSink:
        return EventSink(bus, *event_types)
    return _factory
