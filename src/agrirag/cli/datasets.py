"""agrirag datasets: list datasets and their indexing status."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from agrirag.cli.errors import err_no_db
from agrirag.cli.runtime import DEFAULT_DB, open_db
from agrirag.db.models import DatasetStatus
from agrirag.db.repository import SqliteRepository

console = Console()

_STATUS_STYLE = {
    DatasetStatus.READY: "green",
    DatasetStatus.PROCESSING: "yellow",
    DatasetStatus.ERROR: "red",
}


def datasets_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .agrirag.db."),
    ] = DEFAULT_DB,
) -> None:
    """Show every dataset with its type, status and chunk count."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    try:
        store = SqliteRepository(conn)
        datasets = store.list_datasets()
        counts = {d.id: len(store.list_chunks_by_dataset(d.id)) for d in datasets}
    finally:
        conn.close()

    if not datasets:
        console.print("[yellow]No datasets yet.[/]\n  Run:  agrirag ingest <file>")
        return

    table = Table(title="Datasets")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Name", no_wrap=True)
    table.add_column("Type")
    table.add_column("Status", no_wrap=True)
    table.add_column("Chunks", justify="right")
    table.add_column("Created")
    for d in datasets:
        style = _STATUS_STYLE[d.status]
        table.add_row(
            d.id,
            d.name,
            d.file_type.value,
            f"[{style}]{d.status.value}[/]",
            str(counts[d.id]),
            d.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
