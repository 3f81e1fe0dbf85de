"""
Run command: dispatch events against an application store and report state.
"""

import json
from typing import List

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.markup import escape
from rich.table import Table

from ...core.canonical import canonical_json_str, state_hash
from ...dispatch.scheduler import ManualScheduler
from .._loader import load_store, parse_event

console = Console()


def run_command(
    app_ref: str = typer.Argument(..., help="Application reference, e.g. myapp.store:build"),
    events: List[str] = typer.Option(
        [], "--event", "-e", help='Event to dispatch, JSON array (e.g. \'["add", 2]\') or bare id'
    ),
    queued: bool = typer.Option(False, "--queued", "-q", help="Queue with dispatch() instead of dispatch_sync()"),
    drain: bool = typer.Option(True, "--drain/--no-drain", help="Run queued and delayed dispatches"),
    show_state: bool = typer.Option(False, "--show-state", "-s", help="Show final state"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Dispatch events and show the resulting state.

    Examples:
        statecore run myapp.store:build -e '["counter/add", 2]'
        statecore run myapp.store:build -e reset --queued --show-state
        statecore run myapp.store:build -e '["poll"]' --no-drain --json
    """
    try:
        store = load_store(app_ref)
        parsed = [parse_event(raw) for raw in events]

        for event in parsed:
            if queued:
                store.dispatch(event)
            else:
                store.dispatch_sync(event)

        drained = 0
        if drain and isinstance(store.scheduler, ManualScheduler):
            drained = store.scheduler.run_all()
        pending = store.scheduler.pending() if isinstance(store.scheduler, ManualScheduler) else None

        digest = state_hash(store.state)
        history = store.history
    except Exception as e:
        if json_output:
            print(json.dumps({"error": str(e), "type": type(e).__name__}))
        else:
            console.print(f"[red]Error:[/red] {type(e).__name__}: {e}")
        raise typer.Exit(2)

    if json_output:
        output = {
            "success": True,
            "events_dispatched": len(parsed),
            "scheduled_run": drained,
            "pending": pending,
            "state_version": store.cell.version,
            "state_hash": digest,
            "history": [
                {
                    "event": json.loads(canonical_json_str(list(r.event))),
                    "kind": r.kind.value,
                    "depth": r.depth,
                    "state_version": r.state_version,
                }
                for r in history
            ],
        }
        if show_state:
            output["state"] = json.loads(canonical_json_str(store.state))
        print(json.dumps(output, indent=2))
        return

    console.print(f"[green]✓ Dispatched {len(parsed)} events[/green] ({drained} scheduled tasks run)")
    console.print(f"  State version: [cyan]{store.cell.version}[/cyan]")
    console.print(f"  State hash: [yellow]{digest}[/yellow]")
    if pending:
        console.print(f"  Still scheduled: [magenta]{pending}[/magenta]")

    table = Table(title="Dispatch History")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Event", style="green")
    table.add_column("Kind", style="cyan")
    table.add_column("Depth", justify="right")
    table.add_column("Version", justify="right", style="yellow")
    for i, record in enumerate(history, start=1):
        table.add_row(
            str(i),
            escape(canonical_json_str(list(record.event))),
            record.kind.value,
            str(record.depth),
            str(record.state_version),
        )
    console.print(table)

    if show_state:
        console.print("\n[bold]Final State:[/bold]")
        console.print(Syntax(json.dumps(json.loads(canonical_json_str(store.state)), indent=2), "json"))
