"""Policy Engine — checks every action before execution.

The engine sits between whoever proposes an action and the safe-action
pipeline. It never raises for a denial; callers read the verdict.
"""

from __future__ import annotations

from govcore.policy.schema import Policy, PolicyVerdict
from govcore.types import Action

FORBIDDEN_REASON = "forbidden by policy"
CONFIRMATION_REASON = "requires user confirmation"
AUTONOMOUS_EDITS_REASON = "autonomous edits disabled"


class PolicyEngine:
    """Evaluates actions against a single read-only policy."""

    def __init__(self, policy: Policy | None = None) -> None:
        self._policy = policy or Policy()

    @property
    def policy(self) -> Policy:
        return self._policy

    def evaluate(self, action: Action) -> PolicyVerdict:
        """Allow, deny, or deny pending confirmation. First matching rule wins."""
        policy = self._policy

        if action.type in policy.forbidden_actions:
            return PolicyVerdict(allowed=False, reason=FORBIDDEN_REASON)

        if action.type in policy.require_user_confirmation_for:
            return PolicyVerdict(
                allowed=False,
                reason=CONFIRMATION_REASON,
                requires_confirmation=True,
            )

        if action.type == "write" and not policy.allow_autonomous_edits:
            return PolicyVerdict(allowed=False, reason=AUTONOMOUS_EDITS_REASON)

        return PolicyVerdict(allowed=True)

    def forbidden_for(self, action: Action) -> list[str]:
        """The forbidden types this action hits (empty or one element)."""
        if action.type in self._policy.forbidden_actions:
            return [action.type]
        return []
