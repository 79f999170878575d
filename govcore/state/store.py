"""Unified State Store — the one mutable document of the core.

Updated by: the orchestrator pipeline and direct external callers
Queried by: the orchestrator, coherence checks, the presentation layer

All writes go through `update_state` (merge) or `route_event` (append).
A write either lands completely or not at all: the merged document is
validated before it replaces the current one. After every write the
store notifies its listeners and publishes `ai:core-sync` with a full
snapshot.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from govcore.config import settings
from govcore.events.bus import Event, EventBus
from govcore.exceptions import StateUpdateError
from govcore.state.models import MERGE_RULES, EventTrace, SectionMerge, UnifiedState
from govcore.types import STATE_STORE_SOURCE, EventType

_logger = logging.getLogger(__name__)

StateListener = Callable[[UnifiedState], None]


class UnifiedStateStore:
    """Owns the unified state. Single writer, many readers."""

    def __init__(
        self,
        bus: EventBus | None = None,
        last_events_limit: int | None = None,
    ) -> None:
        self._bus = bus
        self._state = UnifiedState()
        if last_events_limit is None:
            last_events_limit = settings.last_events_limit
        self._events: deque[EventTrace] = deque(maxlen=last_events_limit)
        self._listeners: list[StateListener] = []

    # ── Reads ────────────────────────────────────────────────────────────

    def get_state(self) -> UnifiedState:
        """Deep copy of the current state; safe to mutate."""
        return self._state.model_copy(
            deep=True, update={"last_events": list(self._events)}
        )

    def section(self, name: str) -> dict[str, Any]:
        """Copy of one section. Unknown or empty sections read as {}."""
        value = getattr(self._state, name, None)
        return dict(value) if isinstance(value, dict) else {}

    @property
    def last_events(self) -> list[EventTrace]:
        return list(self._events)

    # ── Writes ───────────────────────────────────────────────────────────

    def update_state(
        self,
        partial: Mapping[str, Any],
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        """Merge `partial` into the state.

        Sections overlay key by key; scalar fields are replaced. `extra`
        rides along in the core-sync payload without touching state.
        Anything the schema rejects raises StateUpdateError and leaves
        the state as it was.
        """
        data = self._state.model_dump()
        for key, value in partial.items():
            rule = MERGE_RULES.get(key)
            if rule is None:
                raise StateUpdateError(f"Unknown state field '{key}'")
            if rule is SectionMerge.APPEND:
                raise StateUpdateError(
                    f"'{key}' is append-only; use route_event() instead"
                )
            if rule is SectionMerge.OVERLAY:
                if value is None:
                    continue
                if not isinstance(value, Mapping):
                    raise StateUpdateError(
                        f"Section '{key}' expects a mapping, got {type(value).__name__}"
                    )
                data[key] = {**data[key], **value}
            else:
                data[key] = value

        # Validation clamps scores and rejects bad types before anything is swapped
        try:
            self._state = UnifiedState.model_validate(data)
        except ValidationError as e:
            raise StateUpdateError(f"Invalid state update: {e}") from e
        self._commit(extra)

    def route_event(self, event: Event) -> None:
        """Append the event to the recent-events ring buffer."""
        self._events.append(
            EventTrace(type=EventType(event.type).value, timestamp=event.timestamp)
        )
        self._commit(None)

    def reset(self) -> None:
        """Back to the empty initial document."""
        self._state = UnifiedState()
        self._events.clear()
        _logger.info("Unified state reset")
        self._commit(None)

    # ── Notification ─────────────────────────────────────────────────────

    def on_change(self, listener: StateListener) -> Callable[[], bool]:
        """Call `listener` with a snapshot after every write."""
        self._listeners.append(listener)

        def unsubscribe() -> bool:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

        return unsubscribe

    def _commit(self, extra: Mapping[str, Any] | None) -> None:
        snapshot = self.get_state()
        for listener in list(self._listeners):
            listener(snapshot)
        if self._bus is not None:
            self._bus.publish(
                EventType.CORE_SYNC,
                {"state": snapshot.model_dump(mode="json"), **(extra or {})},
                source=STATE_STORE_SOURCE,
                priority=6,
            )
