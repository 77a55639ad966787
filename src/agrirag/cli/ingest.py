"""agrirag ingest: chunk, embed and index files into .agrirag.db.

Dispatch by extension:
  .csv               → one chunk per row + one summary chunk
  .pdf               → page text, sentence-packed
  .txt               → sentence-packed
  .jpg .jpeg .png    → registered, then marked error (no OCR)
  anything else      → rejected before a dataset is created
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from agrirag.cli.errors import (
    err_all_ingests_failed,
    err_config,
    err_dimension_mismatch,
    warn_offline_embeddings,
)
from agrirag.cli.runtime import DEFAULT_DB, build_pipeline, load_settings, open_db
from agrirag.config import ConfigError
from agrirag.db.models import DatasetStatus
from agrirag.db.repository import SqliteRepository
from agrirag.ingest.embeddings import HashEmbeddingProvider, build_embedding_provider
from agrirag.ingest.pipeline import IngestResult

console = Console()


def ingest_cmd(
    ctx: typer.Context,
    files: Annotated[
        list[Path],
        typer.Argument(help="Files to ingest (.csv, .pdf, .txt)."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .agrirag.db (created if missing)."),
    ] = DEFAULT_DB,
) -> None:
    """Ingest one or more files into the knowledge base."""
    try:
        cfg = load_settings(verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    embedder = build_embedding_provider(cfg.embedding)
    if isinstance(embedder, HashEmbeddingProvider) and cfg.embedding.provider == "auto":
        console.print(warn_offline_embeddings(cfg.embedding.model))

    conn = open_db(db)
    try:
        store = SqliteRepository(conn)
        try:
            pipeline = build_pipeline(store, cfg, embedder)
        except ValueError as exc:
            console.print(err_dimension_mismatch(str(exc), cfg.embedding.model))
            raise typer.Exit(1)
        with pipeline:
            results: list[IngestResult] = []
            for path in files:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    transient=True,
                    console=console,
                ) as prog:
                    prog.add_task(f"Ingesting {path.name}…", total=None)
                    result = pipeline.ingest_many([path])[0]
                _print_result(result)
                results.append(result)
    finally:
        conn.close()

    console.print(_results_table(results))
    if results and all(r.status is DatasetStatus.ERROR for r in results):
        console.print(err_all_ingests_failed(len(results)))
        raise typer.Exit(1)


def _print_result(result: IngestResult) -> None:
    if result.status is DatasetStatus.READY:
        console.print(f"[green]✓[/] {result.name}: {result.chunks_created} chunks")
    else:
        console.print(f"[red]✗[/] {result.name}: {result.error}")


def _results_table(results: list[IngestResult]) -> Table:
    table = Table(title="Ingest results")
    table.add_column("File", no_wrap=True)
    table.add_column("Dataset", overflow="fold")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    for r in results:
        colour = "green" if r.status is DatasetStatus.READY else "red"
        table.add_row(
            r.name,
            r.dataset_id or "-",
            f"[{colour}]{r.status.value}[/]",
            str(r.chunks_created),
        )
    return table
