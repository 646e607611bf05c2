"""Artifact inspection command."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from matchlog.constants import EventKind
from matchlog.errors import ArtifactIOError
from matchlog.io.parquet import read_events, read_metadata
from matchlog.models.event import COLUMN_FOR_FIELD, OPTIONAL_FIELDS

console = Console()


def inspect_command(
    file_path: Annotated[Path, typer.Argument(help="Artifact (.parquet) to show")],
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum rows to show (0 = all)")
    ] = 50,
    kind: Annotated[
        Optional[str],
        typer.Option("--kind", "-k", help="Only show events of this kind (e.g. death)"),
    ] = None,
) -> None:
    """
    Show the schema metadata and event rows of an artifact.

    Absent fields are shown as blank cells, not zeros.
    """
    if not file_path.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {file_path}")
        raise typer.Exit(code=1)

    kind_filter = None
    if kind is not None:
        try:
            kind_filter = EventKind(kind.lower())
        except ValueError:
            valid = ", ".join(k.value for k in EventKind)
            console.print(f"[bold red]Error:[/bold red] Unknown kind '{kind}' ({valid})")
            raise typer.Exit(code=1)

    try:
        metadata = read_metadata(file_path)
        events = read_events(file_path)
    except ArtifactIOError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    revision = metadata.get("matchlog.format_revision", "unknown")
    console.print(f"[bold blue]Artifact:[/bold blue] {file_path}")
    console.print(f"  Format revision: {revision}")
    console.print(f"  Events: {len(events)}")

    if kind_filter is not None:
        events = [e for e in events if e.kind is kind_filter]
    shown = events if limit <= 0 else events[:limit]

    table = Table(title=f"Events ({len(shown)} of {len(events)})")
    table.add_column("t", justify="right", style="cyan")
    table.add_column("kind", style="magenta")
    for name in OPTIONAL_FIELDS:
        table.add_column(COLUMN_FOR_FIELD[name], justify="right")

    for event in shown:
        cells = [str(event.timestamp), event.kind.value]
        for name in OPTIONAL_FIELDS:
            value = getattr(event, name)
            cells.append("" if value is None else str(value))
        table.add_row(*cells)

    console.print(table)
