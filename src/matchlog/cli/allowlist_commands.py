"""Consent allowlist commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from matchlog.errors import ConfigurationError
from matchlog.identity import load_allowlist_entries, write_default_allowlist

allowlist_app = typer.Typer(
    name="allowlist",
    help="Consent allowlist operations",
    no_args_is_help=True,
)
console = Console()


@allowlist_app.command()
def check(
    file_path: Annotated[Path, typer.Argument(help="Allowlist YAML file")],
    show: Annotated[
        bool, typer.Option("--show", help="List the permitted subjects")
    ] = False,
) -> None:
    """
    Validate an allowlist file.

    Malformed entries are reported and skipped, the same way the recorder
    loads the file.
    """
    if not file_path.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {file_path}")
        raise typer.Exit(code=1)

    try:
        entries = load_allowlist_entries(file_path)
    except ConfigurationError as e:
        console.print(f"[bold red]Invalid allowlist:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] {len(entries)} permitted subjects in {file_path}")

    public_ids = list(entries.values())
    duplicates = sorted({pid for pid in public_ids if public_ids.count(pid) > 1})
    if duplicates:
        console.print(
            f"[yellow]Warning:[/yellow] public IDs used more than once: {duplicates}"
        )

    if show and entries:
        table = Table(title="Permitted subjects")
        table.add_column("Durable ID", style="cyan")
        table.add_column("Public ID", justify="right", style="green")
        for durable_id, public_id in sorted(entries.items(), key=lambda kv: kv[1]):
            table.add_row(str(durable_id), str(public_id))
        console.print(table)


@allowlist_app.command()
def init(
    file_path: Annotated[Path, typer.Argument(help="Allowlist YAML file to create")],
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite an existing file")
    ] = False,
) -> None:
    """Write a commented allowlist template."""
    if write_default_allowlist(file_path, overwrite=force):
        console.print(f"[green]✓[/green] Created allowlist template: {file_path}")
    else:
        console.print(
            f"[yellow]Exists:[/yellow] {file_path} (use --force to overwrite)"
        )
