"""agrirag history: replay the messages of a conversation in order."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from agrirag.cli.errors import err_conversation_not_found, err_no_db
from agrirag.cli.runtime import DEFAULT_DB, open_db
from agrirag.db.models import MessageRole
from agrirag.db.repository import SqliteRepository

console = Console()


def history_cmd(
    conversation_id: Annotated[str, typer.Argument(help="Conversation id (see 'agrirag ask').")],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .agrirag.db."),
    ] = DEFAULT_DB,
) -> None:
    """Show a conversation's messages, oldest first."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    try:
        store = SqliteRepository(conn)
        conversation = store.get_conversation(conversation_id)
        if conversation is None:
            console.print(err_conversation_not_found(conversation_id))
            raise typer.Exit(1)
        messages = store.list_messages(conversation_id)
    finally:
        conn.close()

    console.print(f"[bold]{conversation.title or conversation.id}[/]")
    for message in messages:
        if message.role is MessageRole.USER:
            console.print(Panel(message.content, title="You", title_align="left", expand=False))
            continue
        sources = message.metadata.get("sources") or []
        footer = f"Sources: {', '.join(sources)}" if sources else None
        console.print(
            Panel(
                message.content,
                title="Assistant",
                title_align="left",
                subtitle=footer,
                expand=False,
            )
        )
