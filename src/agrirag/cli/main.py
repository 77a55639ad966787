"""agrirag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from agrirag.cli.ask import ask_cmd
from agrirag.cli.datasets import datasets_cmd
from agrirag.cli.history import history_cmd
from agrirag.cli.ingest import ingest_cmd
from agrirag.cli.remove import remove_cmd
from agrirag.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("agrirag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"agrirag {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="agrirag",
    help=(
        "agrirag — question answering over agricultural datasets.\n\n"
        "  agrirag ingest  Chunk and index CSV, PDF and text files.\n"
        "  agrirag ask     Answer a question (computations run on the CSV rows)."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """agrirag — question answering over agricultural datasets."""
    ctx.obj = {"verbose": verbose}
    if verbose:
        configure_logging("DEBUG")


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("datasets")(datasets_cmd)
app.command("history")(history_cmd)
app.command("remove")(remove_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed agrirag version."""
    typer.echo(f"agrirag {_installed_version()}")


if __name__ == "__main__":
    app()
