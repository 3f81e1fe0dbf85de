"""
Registry command: list what an application store has registered.
"""

import json

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .._loader import load_store

console = Console()


def registry_command(
    app_ref: str = typer.Argument(..., help="Application reference, e.g. myapp.store:build"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List registered events, subscriptions and effects.
    """
    try:
        store = load_store(app_ref)
    except Exception as e:
        if json_output:
            print(json.dumps({"error": str(e), "type": type(e).__name__}))
        else:
            console.print(f"[red]Error:[/red] {type(e).__name__}: {e}")
        raise typer.Exit(2)

    events = sorted(
        ((str(eid), store.events.lookup(eid).kind.value) for eid in store.events.ids()),
    )
    subs = sorted(str(sid) for sid in store.subscriptions.ids())
    effects = sorted(str(fid) for fid in store.effects.ids())

    if json_output:
        print(json.dumps({
            "events": [{"id": eid, "kind": kind} for eid, kind in events],
            "subscriptions": subs,
            "effects": effects,
        }, indent=2))
        return

    table = Table(title="Registered Handlers")
    table.add_column("Registry", style="bold")
    table.add_column("Id", style="green")
    table.add_column("Kind", style="cyan")
    for eid, kind in events:
        table.add_row("event", escape(eid), kind)
    for sid in subs:
        table.add_row("subscription", escape(sid), "")
    for fid in effects:
        table.add_row("effect", escape(fid), "")
    console.print(table)
