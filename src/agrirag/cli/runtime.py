"""Shared wiring for CLI commands: database, config and service graph."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from agrirag.config import AgriragConfig, load_config
from agrirag.db.connection import Database
from agrirag.db.repository import SqliteRepository
from agrirag.db.schema import initialize
from agrirag.db.vectors import InMemoryVectorIndex
from agrirag.ingest.embeddings import EmbeddingProvider
from agrirag.ingest.pipeline import IndexingPipeline, rebuild_index
from agrirag.ingest.tabular import read_rows
from agrirag.log import configure_logging
from agrirag.rag.chat import ChatService
from agrirag.rag.classifier import QueryClassifier
from agrirag.rag.computation import ComputationEngine
from agrirag.rag.llm_client import build_generator
from agrirag.rag.orchestrator import RagOrchestrator
from agrirag.rag.vocabulary import Vocabulary

DEFAULT_DB = Path(".agrirag.db")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the project database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def load_settings(verbose: bool = False) -> AgriragConfig:
    """Load the layered config and apply its log level (``--verbose`` wins).

    Raises:
        ConfigError: Invalid or forbidden config values.
    """
    cfg = load_config()
    configure_logging("DEBUG" if verbose else cfg.logging.level)
    return cfg


def build_pipeline(
    store: SqliteRepository, cfg: AgriragConfig, embedder: EmbeddingProvider
) -> IndexingPipeline:
    index = rebuild_index(store, dimensions=cfg.embedding.dimensions)
    return IndexingPipeline(
        store,
        index,
        embedder,
        chunk_size=cfg.chunkers.chunk_size,
        overlap=cfg.chunkers.overlap,
    )


def build_chat(
    store: SqliteRepository, cfg: AgriragConfig, embedder: EmbeddingProvider
) -> ChatService:
    """Wire the orchestrator over an index rebuilt from the stored chunks.

    Raises:
        ConfigError: The vocabulary file cannot be loaded.
        ValueError: Stored embeddings disagree with ``embedding.dimensions``.
    """
    vocabulary = Vocabulary.load(cfg.vocabulary.path)
    index: InMemoryVectorIndex = rebuild_index(store, dimensions=cfg.embedding.dimensions)
    orchestrator = RagOrchestrator(
        store=store,
        index=index,
        embedder=embedder,
        generator=build_generator(cfg.generation),
        classifier=QueryClassifier(vocabulary.cues),
        engine=ComputationEngine(vocabulary),
        row_reader=read_rows,
        config=cfg,
    )
    return ChatService(store, orchestrator)

