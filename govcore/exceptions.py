"""Custom exception hierarchy for govcore.

Policy and risk denials are never raised; they come back as results.
Everything here signals misuse of the core or a broken invariant.
"""


class GovcoreError(Exception):
    """Base for all govcore errors."""


class UnknownEventTypeError(GovcoreError):
    """Event type is not part of the closed taxonomy."""


class DispatchDepthExceededError(GovcoreError):
    """Synchronous publish nesting went past the configured limit."""


class CyclicSubscriptionError(GovcoreError):
    """A subscriber would receive the event types it emits itself."""


class StateUpdateError(GovcoreError):
    """Update targets an unknown or append-only section of the unified state."""


class PipelineStateError(GovcoreError):
    """Invalid orchestrator stage transition."""
