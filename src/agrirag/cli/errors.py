"""agrirag rich error messages: actionable feedback.

Every error shown to the user contains:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from agrirag.cli.errors import err_no_db
    console.print(err_no_db(".agrirag.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = ".agrirag.db") -> str:
    """No database at *db_path* yet."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  agrirag ingest <file.csv|file.pdf|file.txt>"
    )


def err_config(message: str) -> str:
    """agrirag.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix agrirag.yaml (or ~/.agrirag/config.yaml) and retry."
    )


def err_vocabulary(message: str) -> str:
    """The computation vocabulary file cannot be used."""
    return (
        f"[red]Error:[/] Cannot load the computation vocabulary.\n"
        f"  {message}\n"
        "  Point vocabulary.path in agrirag.yaml at a valid YAML file, or remove it."
    )


def err_dimension_mismatch(message: str, model: str) -> str:
    """Stored embeddings do not match the configured embedding model."""
    return (
        f"[red]Error:[/] Stored embeddings do not match the configured model '{model}'.\n"
        f"  {message}\n"
        "  Re-ingest your files or set embedding.model / embedding.dimensions to match."
    )


def err_dataset_not_found(dataset_id: str) -> str:
    return (
        f"[yellow]Dataset not found:[/] '{dataset_id}' is not in the knowledge base.\n"
        "  Run:  agrirag datasets  to see all datasets."
    )


def err_conversation_not_found(conversation_id: str) -> str:
    return (
        f"[red]Error:[/] Conversation '{conversation_id}' does not exist.\n"
        "  Omit --conversation to start a new one."
    )


def err_all_ingests_failed(count: int) -> str:
    """Every file of an ingest run failed."""
    return (
        f"[red]Error:[/] None of the {count} file(s) could be ingested.\n"
        "  Supported types: .csv, .pdf, .txt (images are not processed).\n"
        "  Check the errors above, fix the files and retry."
    )


def warn_offline_embeddings(model: str) -> str:
    """Hash embeddings are in use because no API key is set."""
    return (
        f"[yellow]Warning:[/] No API key for embedding model '{model}'.\n"
        "  Using offline hash embeddings; retrieval quality will be poor.\n"
        "  Set the provider's API key (e.g. export HUGGINGFACE_API_KEY=hf_...) and re-ingest."
    )
