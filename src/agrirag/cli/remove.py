"""agrirag remove: delete a dataset and everything derived from it.

Chunks and their embeddings cascade with the dataset record. The vector
index is rebuilt from the store on every command, so nothing else needs
cleaning up.

Usage:
  agrirag remove <dataset-id>
  agrirag remove <dataset-id> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from agrirag.cli.errors import err_dataset_not_found, err_no_db
from agrirag.cli.runtime import DEFAULT_DB, open_db
from agrirag.db.repository import SqliteRepository

console = Console()


def remove_cmd(
    dataset_id: Annotated[str, typer.Argument(help="Dataset id (see 'agrirag datasets').")],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .agrirag.db."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a dataset and all its chunks from the knowledge base."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    try:
        store = SqliteRepository(conn)
        dataset = store.get_dataset(dataset_id)
        if dataset is None:
            console.print(err_dataset_not_found(dataset_id))
            raise typer.Exit(0)

        chunk_count = len(store.list_chunks_by_dataset(dataset_id))
        console.print(f"\nRemove dataset: [bold]{dataset.name}[/] ({dataset.id})")
        console.print(f"  Status: {dataset.status.value}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        store.delete_dataset(dataset_id)
        console.print(f"\n[green]✓[/] Removed: {dataset.name}")
        console.print(f"  {chunk_count} chunks deleted")
    finally:
        conn.close()
