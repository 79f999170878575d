"""Pipeline stage machine. Enforces the fixed order of orchestration."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from govcore.exceptions import PipelineStateError

_logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    ROUTING = "routing"
    PATCHING = "patching"
    INFERRING = "inferring"
    RECOMMENDING = "recommending"
    SYNCHRONIZING = "synchronizing"
    HARMONIZING = "harmonizing"
    EVOLVING = "evolving"
    CHECKING_COHERENCE = "checking_coherence"
    VALIDATING = "validating"
    SAFE_ACTION = "safe_action"
    PUBLISHING = "publishing"


PIPELINE_ORDER: tuple[PipelineStage, ...] = tuple(PipelineStage)

TransitionCallback = Callable[[PipelineStage, PipelineStage], None]


def _build_transitions() -> dict[PipelineStage, set[PipelineStage]]:
    transitions: dict[PipelineStage, set[PipelineStage]] = {}
    for current, following in zip(PIPELINE_ORDER, PIPELINE_ORDER[1:] + (PipelineStage.IDLE,)):
        transitions[current] = {following}
    # Any in-flight stage may fall back to idle when a step raises
    for stage in PIPELINE_ORDER[1:]:
        transitions[stage].add(PipelineStage.IDLE)
    return transitions


# Valid stage transitions: one step forward, or abort to idle
VALID_TRANSITIONS: dict[PipelineStage, set[PipelineStage]] = _build_transitions()


class PipelineStateMachine:
    """Tracks which stage the orchestrator is in for the event in flight."""

    def __init__(self) -> None:
        self._stage = PipelineStage.IDLE
        self._listeners: list[TransitionCallback] = []

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def in_flight(self) -> bool:
        return self._stage is not PipelineStage.IDLE

    def transition(self, target: PipelineStage) -> None:
        valid = VALID_TRANSITIONS.get(self._stage, set())
        if target not in valid:
            raise PipelineStateError(
                f"Cannot move pipeline from {self._stage.value} to {target.value}"
            )
        old = self._stage
        self._stage = target
        _logger.debug("Pipeline %s -> %s", old.value, target.value)
        for listener in self._listeners:
            listener(old, target)

    def abort(self) -> None:
        """Return to idle from wherever the pipeline stopped."""
        if self.in_flight:
            self.transition(PipelineStage.IDLE)

    def on_transition(self, callback: TransitionCallback) -> None:
        self._listeners.append(callback)
