"""govcore CLI — poke a fresh in-memory core from the shell.

Every invocation builds its own core; nothing survives between runs.
`govcore replay` is the way to push a whole session through.
"""

from __future__ import annotations

import logging
from pathlib import Path

import orjson
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from govcore.config import settings
from govcore.core import GovernanceCore
from govcore.events.bus import Event, coerce_event_type
from govcore.events.replay import Recording, replay as replay_recording
from govcore.exceptions import GovcoreError
from govcore.types import EventType, RiskLevel

console = Console()

app = typer.Typer(
    name="govcore",
    help="govcore -- event-driven decision governance, in process.",
    no_args_is_help=True,
)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_insight(event: Event | None) -> None:
    if event is None:
        console.print("[dim]No insight generated.[/dim]")
        return
    p = event.payload
    style = "red" if p.get("severity") == "high" else "green"
    console.print(Panel(
        f"[bold]{p.get('message', '')}[/bold]\n\n"
        f"Type:        {p.get('type')}\n"
        f"Severity:    [{style}]{p.get('severity')}[/{style}]\n"
        f"Trust:       {p.get('trust')}\n"
        f"Confidence:  {p.get('confidence')}\n"
        f"Health:      {p.get('health_score')}\n"
        f"Coherence:   {p.get('coherence_score')}\n"
        f"Conflicts:   {', '.join(p.get('contradictions') or []) or '(none)'}",
        title=f"Insight from {p.get('source_event')}",
        border_style="cyan",
    ))


def _print_decisions(core: GovernanceCore, limit: int) -> None:
    entries = core.ledger.audit_last_decisions(limit)
    if not entries:
        console.print("[dim]No decisions recorded.[/dim]")
        return

    table = Table(title="Decision Ledger")
    table.add_column("Decided", style="dim", no_wrap=True)
    table.add_column("Intent", style="cyan", max_width=15)
    table.add_column("Action", style="green", max_width=18)
    table.add_column("Risk", style="yellow", max_width=8)
    table.add_column("OK", style="white", max_width=4)
    table.add_column("Reason", style="white")

    for e in entries:
        table.add_row(
            str(e.timestamps.decided if e.timestamps else ""),
            e.intent or "",
            str(e.action.get("type", "")),
            e.risk.level,
            "yes" if e.decision.get("success") else "NO",
            str(e.decision.get("reason") or ""),
        )
    console.print(table)


@app.command("policy")
def policy():
    """Show the active policy."""
    core = GovernanceCore()
    p = core.policy_engine.policy
    table = Table(title="Active Policy")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Forbidden actions", ", ".join(sorted(p.forbidden_actions)) or "(none)")
    table.add_row("Needs confirmation", ", ".join(sorted(p.require_user_confirmation_for)) or "(none)")
    table.add_row("Autonomous edits", str(p.allow_autonomous_edits))
    table.add_row("Risk tolerance", p.risk_tolerance.value)
    table.add_row("Max daily actions", f"{p.max_daily_actions:,}")
    console.print(table)


@app.command("check")
def check(
    action_type: str = typer.Argument(help="Action type to screen, e.g. 'read' or 'delete'"),
    intent: str = typer.Option("cli", "--intent", "-i", help="Why the action is wanted"),
    risk: RiskLevel = typer.Option(RiskLevel.MEDIUM, "--risk", "-r", help="Risk hint"),
):
    """Run one action through the safe-action pipeline."""
    core = GovernanceCore()
    result = core.run_safe_action_pipeline(
        {"type": action_type, "risk_level": risk.value}, {"intent": intent},
    )
    verdict = "[green]allowed[/green]" if result.allowed else "[red]blocked[/red]"
    reason = result.decision.reason or "approved by policy and risk screening"
    console.print(Panel(
        f"Action:     {action_type}\n"
        f"Verdict:    {verdict}\n"
        f"Reason:     {reason}\n"
        f"Validated:  {result.validated.type} / {result.validated.severity} "
        f"(trust {result.validated.trust})",
        title="Safe-Action Check",
        border_style="cyan",
    ))
    if not result.allowed:
        raise typer.Exit(code=1)


@app.command("publish")
def publish(
    event_type: str = typer.Argument(help="Event type, e.g. 'ai:trend-detected'"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
):
    """Publish one event into a fresh core and show the resulting insight."""
    try:
        etype = coerce_event_type(event_type)
        data = orjson.loads(payload)
    except (GovcoreError, orjson.JSONDecodeError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    if not isinstance(data, dict):
        console.print("[red]Payload must be a JSON object[/red]")
        raise typer.Exit(code=2)

    core = GovernanceCore()
    core.initialize_integrated_orchestrator()
    core.publish(etype, data, source="cli")
    _print_insight(core.last_insight())


@app.command("replay")
def replay(
    path: Path = typer.Argument(help="Recording exported as JSON"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max decisions to show"),
):
    """Replay a recorded session and show insights plus the decision ledger."""
    try:
        recording = Recording.import_json(path.read_bytes())
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot load recording: {e}[/red]")
        raise typer.Exit(code=2)

    core = GovernanceCore()
    core.initialize_integrated_orchestrator()
    insights: list[Event] = []
    core.bus.subscribe(EventType.INSIGHT_GENERATED, insights.append)
    count = replay_recording(recording, core.bus)

    console.print(f"[dim]Replayed {count} events from '{recording.name}'[/dim]")
    for insight in insights:
        _print_insight(insight)
    _print_decisions(core, limit)


@app.command("version")
def version_cmd():
    """Show govcore version."""
    from govcore import __version__
    console.print(f"govcore v{__version__}")


def main() -> None:
    app()
