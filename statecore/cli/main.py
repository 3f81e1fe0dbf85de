#!/usr/bin/env python3
"""
statecore CLI

Developer tool for poking at an application's store from the shell.
"""

import typer
from rich.console import Console
from rich.table import Table

from ..logging_config import setup_logging
from .commands import registry, run

app = typer.Typer(
    name="statecore",
    help="Single-writer reactive state store CLI",
    add_completion=False,
)

console = Console()

app.command(name="run")(run.run_command)
app.command(name="registry")(registry.registry_command)


@app.command()
def version():
    """Show version information."""
    from statecore import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]statecore[/bold]", f"v{__version__}")
    console.print(table)


def main():
    """Main entrypoint."""
    setup_logging()
    app()


if __name__ == "__main__":
    main()
