"""Console script for matchlog."""

from __future__ import annotations

import typer
from rich.console import Console

app = typer.Typer(
    name="matchlog",
    help="Match telemetry recorder - inspect and query recorded match artifacts",
    no_args_is_help=True,
)
console = Console()

# Import subcommand apps
from matchlog.cli.allowlist_commands import allowlist_app
from matchlog.cli.inspect_commands import inspect_command
from matchlog.cli.query_commands import query_app

# Register subcommands
app.command(name="inspect", help="Show the rows of one artifact")(inspect_command)
app.add_typer(allowlist_app, name="allowlist", help="Consent allowlist operations")
app.add_typer(query_app, name="query", help="Query the artifact tree")


if __name__ == "__main__":
    app()
