"""Global configuration, loaded from environment variables."""

from pydantic_settings import BaseSettings


class GovcoreSettings(BaseSettings):
    log_level: str = "INFO"

    # Buffer capacities
    last_events_limit: int = 50
    decision_ledger_limit: int = 100
    governance_log_limit: int = 200
    event_history_limit: int = 100
    conflicts_limit: int = 20  # newest consistency conflicts kept in state

    # Bus
    max_dispatch_depth: int = 8  # nested synchronous publishes before refusing

    # Recommendation validation gates
    coherence_threshold: float = 0.4  # must be strictly above
    risk_threshold: float = 0.7  # must be strictly below

    # Safe actions
    max_daily_actions: int = 1000

    model_config = {"env_prefix": "GOVCORE_"}


settings = GovcoreSettings()
