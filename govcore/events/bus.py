"""Event Bus — synchronous typed pub/sub.

All subsystems publish here. Delivery happens inside the publish call,
in subscription order, to the handlers of that exact event type. A
handler that raises aborts the publish; the exception reaches the caller.

Handlers may publish in turn. Nesting is bounded by `max_dispatch_depth`
so a subscriber that feeds itself fails fast instead of recursing forever.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from itertools import count
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from govcore.config import settings
from govcore.exceptions import DispatchDepthExceededError, UnknownEventTypeError
from govcore.types import EventType, Payload, now_ms

_logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], Any]
Unsubscribe = Callable[[], bool]


class EventMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str = "unknown"
    priority: int = Field(default=0, ge=0, le=9)


class Event(BaseModel):
    """A published event. Immutable; identity is structural."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    payload: Payload = Field(default_factory=dict)
    metadata: EventMetadata = Field(default_factory=EventMetadata)
    timestamp: int = Field(default_factory=now_ms)


class _Subscription:
    __slots__ = ("id", "event_type", "handler", "once")

    def __init__(self, sub_id: int, event_type: EventType, handler: EventHandler, once: bool):
        self.id = sub_id
        self.event_type = event_type
        self.handler = handler
        self.once = once


def coerce_event_type(value: EventType | str) -> EventType:
    try:
        return EventType(value)
    except ValueError:
        raise UnknownEventTypeError(f"Unknown event type '{value}'") from None


class EventBus:
    """Synchronous pub/sub event bus.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe("ai:trend-detected", handler)
        bus.publish("ai:trend-detected", {"trend": "growth"}, source="forecaster")
        unsubscribe()
    """

    def __init__(
        self,
        history_limit: int | None = None,
        max_dispatch_depth: int | None = None,
    ) -> None:
        self._subscribers: dict[EventType, list[_Subscription]] = defaultdict(list)
        self._history_limit = (
            settings.event_history_limit if history_limit is None else history_limit
        )
        self._history: deque[Event] = deque(maxlen=self._history_limit)
        self._max_depth = (
            settings.max_dispatch_depth if max_dispatch_depth is None else max_dispatch_depth
        )
        self._depth = 0
        self._ids = count(1)

    def subscribe(
        self,
        event_type: EventType | str,
        handler: EventHandler,
        once: bool = False,
    ) -> Unsubscribe:
        """Subscribe to one event type. Returns a callable that undoes it."""
        etype = coerce_event_type(event_type)
        sub = _Subscription(next(self._ids), etype, handler, once)
        self._subscribers[etype].append(sub)
        return lambda: self._remove(sub)

    def once(self, event_type: EventType | str, handler: EventHandler) -> Unsubscribe:
        """Subscribe for a single delivery."""
        return self.subscribe(event_type, handler, once=True)

    def publish(
        self,
        event_type: EventType | str,
        payload: Payload | None = None,
        source: str = "unknown",
        priority: int = 0,
    ) -> Event:
        """Publish an event and deliver it to every current subscriber."""
        etype = coerce_event_type(event_type)
        if self._depth >= self._max_depth:
            raise DispatchDepthExceededError(
                f"Refusing to publish '{etype.value}': dispatch depth "
                f"{self._depth} reached limit {self._max_depth}"
            )

        event = Event(
            type=etype,
            payload=dict(payload or {}),
            metadata=EventMetadata(source=source, priority=priority),
        )
        self._history.append(event)

        # Snapshot so handlers can unsubscribe while we iterate
        subscriptions = list(self._subscribers.get(etype, ()))
        _logger.debug(
            "Publishing %s from %s to %d handler(s) at depth %d",
            etype.value, source, len(subscriptions), self._depth,
        )
        self._depth += 1
        try:
            for sub in subscriptions:
                if sub.once:
                    self._remove(sub)
                sub.handler(event)
        finally:
            self._depth -= 1

        return event

    def _remove(self, sub: _Subscription) -> bool:
        handlers = self._subscribers.get(sub.event_type)
        if not handlers or sub not in handlers:
            return False
        handlers.remove(sub)
        if not handlers:
            del self._subscribers[sub.event_type]
        return True

    def remove_all_listeners(self, event_type: EventType | str) -> None:
        """Drop every handler of one event type."""
        self._subscribers.pop(coerce_event_type(event_type), None)

    def history(
        self,
        limit: int | None = None,
        type_filter: EventType | str | None = None,
    ) -> list[Event]:
        """Recent events in publish order, optionally filtered by type."""
        events = list(self._history)
        if type_filter is not None:
            etype = coerce_event_type(type_filter)
            events = [e for e in events if e.type == etype]
        if limit and limit > 0:
            events = events[-limit:]
        return events

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._subscribers.values())

    @property
    def dispatch_depth(self) -> int:
        return self._depth

    def stats(self) -> dict[str, Any]:
        return {
            "total_subscriptions": self.subscriber_count,
            "subscriptions_by_type": {
                etype.value: len(handlers)
                for etype, handlers in self._subscribers.items()
            },
            "history_size": len(self._history),
            "max_history_size": self._history_limit,
        }
