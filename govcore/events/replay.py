"""Event recording and replay.

A recorder taps the bus for a set of event types and keeps what it hears.
A stopped recording can be exported as JSON, loaded back, and replayed
onto any bus to drive a fresh core through the same sequence.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

import orjson
from pydantic import BaseModel, Field

from govcore.events.bus import Event, EventBus, Unsubscribe
from govcore.types import LISTENED_EVENT_TYPES, STATE_STORE_SOURCE, EventType, now_ms

_logger = logging.getLogger(__name__)


class Recording(BaseModel):
    """A named, ordered capture of bus traffic."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str = ""
    started_at: int = Field(default_factory=now_ms)
    stopped_at: int | None = None
    events: list[Event] = Field(default_factory=list)

    @property
    def event_count(self) -> int:
        return len(self.events)

    def export_json(self) -> bytes:
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def import_json(cls, raw: bytes | str) -> Recording:
        return cls.model_validate(orjson.loads(raw))


class EventRecorder:
    """Records bus events into named recordings. One active recording at a time."""

    def __init__(
        self,
        bus: EventBus,
        event_types: Iterable[EventType | str] = LISTENED_EVENT_TYPES,
    ) -> None:
        self._bus = bus
        self._types = [EventType(t) for t in event_types]
        self._recordings: dict[str, Recording] = {}
        self._active: Recording | None = None
        self._unsubscribes: list[Unsubscribe] = []

    @property
    def is_recording(self) -> bool:
        return self._active is not None

    def start(self, name: str = "") -> str:
        """Begin recording. Stops any recording already in progress."""
        if self._active is not None:
            self.stop()
        recording = Recording(name=name)
        recording.name = name or f"recording-{recording.id}"
        self._active = recording
        self._unsubscribes = [
            self._bus.subscribe(etype, self._capture) for etype in self._types
        ]
        _logger.info("Recording '%s' started (%d event types)", recording.name, len(self._types))
        return recording.id

    def stop(self) -> Recording | None:
        """Stop and store the active recording. None if nothing was recording."""
        recording = self._active
        if recording is None:
            return None
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        self._active = None
        recording.stopped_at = now_ms()
        self._recordings[recording.id] = recording
        _logger.info("Recording '%s' stopped with %d events", recording.name, recording.event_count)
        return recording

    def _capture(self, event: Event) -> None:
        if self._active is None:
            return
        # Store snapshots are a consequence of the pipeline, not an input to it
        if event.type == EventType.CORE_SYNC and event.metadata.source == STATE_STORE_SOURCE:
            return
        self._active.events.append(event)

    def current_events(self) -> list[Event]:
        return list(self._active.events) if self._active else []

    def get(self, recording_id: str) -> Recording | None:
        return self._recordings.get(recording_id)

    def list_recordings(self) -> list[Recording]:
        return sorted(self._recordings.values(), key=lambda r: r.started_at)

    def add(self, recording: Recording) -> None:
        """Store an imported recording."""
        self._recordings[recording.id] = recording

    def delete(self, recording_id: str) -> bool:
        return self._recordings.pop(recording_id, None) is not None

    def clear(self) -> None:
        self._recordings.clear()


def replay(recording: Recording, bus: EventBus) -> int:
    """Publish every recorded event again, in order. Returns how many."""
    for event in recording.events:
        bus.publish(
            event.type,
            event.payload,
            source=event.metadata.source,
            priority=event.metadata.priority,
        )
    _logger.info("Replayed %d events from '%s'", recording.event_count, recording.name)
    return recording.event_count
