"""agrirag ask: answer a question over the ingested datasets.

Computational questions ("total rice production in Punjab 2020-2022") are
aggregated directly from the CSV rows; everything else is answered by the
language model over the retrieved chunks. Each exchange is stored as a
conversation so ``agrirag history`` can replay it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from agrirag.cli.errors import (
    err_config,
    err_conversation_not_found,
    err_dimension_mismatch,
    err_no_db,
    err_vocabulary,
)
from agrirag.cli.runtime import DEFAULT_DB, build_chat, load_settings, open_db
from agrirag.config import ConfigError
from agrirag.db.models import DEFAULT_LANGUAGE, DEFAULT_MODEL, QueryRequest
from agrirag.db.repository import SqliteRepository
from agrirag.ingest.embeddings import build_embedding_provider
from agrirag.rag.chat import ChatReply

console = Console()


def ask_cmd(
    ctx: typer.Context,
    question: Annotated[str, typer.Argument(help="The question to answer.")],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .agrirag.db."),
    ] = DEFAULT_DB,
    model: Annotated[
        str,
        typer.Option("--model", "-m", help="LiteLLM model (default: generation.model)."),
    ] = DEFAULT_MODEL,
    language: Annotated[
        str,
        typer.Option("--language", "-l", help="Answer language."),
    ] = DEFAULT_LANGUAGE,
    conversation: Annotated[
        str | None,
        typer.Option("--conversation", "-c", help="Continue an existing conversation."),
    ] = None,
) -> None:
    """Ask a question; the answer and its sources are stored as a conversation."""
    if not question.strip():
        console.print("[red]Error:[/] The question is empty.\n  Run:  agrirag ask \"<question>\"")
        raise typer.Exit(1)
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    try:
        cfg = load_settings(verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    conn = open_db(db)
    try:
        store = SqliteRepository(conn)
        try:
            chat = build_chat(store, cfg, build_embedding_provider(cfg.embedding))
        except ConfigError as exc:
            console.print(err_vocabulary(str(exc)))
            raise typer.Exit(1)
        except ValueError as exc:
            console.print(err_dimension_mismatch(str(exc), cfg.embedding.model))
            raise typer.Exit(1)

        request = QueryRequest(
            message=question, conversation_id=conversation, model=model, language=language
        )
        try:
            with console.status("Thinking…"):
                reply = chat.send(request)
        except LookupError:
            console.print(err_conversation_not_found(conversation or ""))
            raise typer.Exit(1)
    finally:
        conn.close()

    _show_reply(reply)


def _show_reply(reply: ChatReply) -> None:
    title = "[bold]Computation[/]" if reply.is_computation else "[bold]Answer[/]"
    console.print(Panel(reply.answer, title=title, expand=False))
    if reply.sources:
        console.print("Sources: " + ", ".join(reply.sources))
    console.print(f"[dim]Conversation: {reply.conversation_id}[/]")
