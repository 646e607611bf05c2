"""Query commands over the artifact tree."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from matchlog.query import MatchLogQuery
from matchlog.utils.filename import parse_artifact_filename

query_app = typer.Typer(
    name="query",
    help="Query the artifact tree",
    no_args_is_help=True,
)
console = Console()


def _data_root_option() -> Path:
    return typer.Option(
        Path("data"),
        "--data-root",
        "-d",
        help="Root directory of recorded artifacts",
    )


@query_app.command()
def artifacts(
    data_root: Path = _data_root_option(),
    map_slug: Optional[str] = typer.Option(
        None, "--map", "-m", help="Only this map directory"
    ),
):
    """List finalized artifacts."""
    q = MatchLogQuery(data_root)
    files = q.artifacts(map_slug)
    if not files:
        console.print("[yellow]No artifacts found[/yellow]")
        return

    table = Table(title=f"Artifacts ({len(files)})")
    table.add_column("Map", style="magenta")
    table.add_column("Started", style="cyan")
    table.add_column("File", style="blue")
    for path in files:
        try:
            parts = parse_artifact_filename(path)
            started = parts["started_at"].isoformat(sep=" ")
        except ValueError:
            started = "?"
        table.add_row(path.parent.name, started, path.name)
    console.print(table)


@query_app.command()
def counts(
    data_root: Path = _data_root_option(),
    map_slug: Optional[str] = typer.Option(
        None, "--map", "-m", help="Only this map directory"
    ),
):
    """Count events per map and kind."""
    q = MatchLogQuery(data_root)
    df = q.event_counts(map_slug)
    if df.empty:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title="Event counts")
    table.add_column("Map", style="magenta")
    table.add_column("Kind", style="cyan")
    table.add_column("Events", justify="right", style="green")
    for row in df.itertuples(index=False):
        table.add_row(row.map_slug, row.event_kind, str(row.n_events))
    console.print(table)


@query_app.command()
def positions(
    subject_id: int = typer.Argument(..., help="Loggable subject ID"),
    data_root: Path = _data_root_option(),
    map_slug: Optional[str] = typer.Option(
        None, "--map", "-m", help="Only this map directory"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write samples to CSV instead of printing"
    ),
):
    """Position samples of one subject."""
    q = MatchLogQuery(data_root)
    df = q.subject_positions(subject_id, map_slug)
    if df.empty:
        console.print(f"[yellow]No position samples for subject {subject_id}[/yellow]")
        return

    if output is not None:
        df.to_csv(output, index=False)
        console.print(f"[green]✓[/green] Wrote {len(df)} samples to {output}")
        return

    console.print(df.to_string(index=False))
