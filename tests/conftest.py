"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from agrirag.db.connection import Database
from agrirag.db.repository import MemoryRepository, SqliteRepository
from agrirag.db.schema import initialize
from agrirag.db.vectors import InMemoryVectorIndex
from agrirag.ingest.embeddings import HashEmbeddingProvider

DIMS = 16


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".agrirag.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_store(tmp_db):
    return SqliteRepository(tmp_db)


@pytest.fixture
def memory_store():
    return MemoryRepository()


@pytest.fixture
def index():
    return InMemoryVectorIndex(dimensions=DIMS)


@pytest.fixture
def embedder():
    """Offline, deterministic embeddings with a small dimensionality."""
    return HashEmbeddingProvider(dimensions=DIMS)


@pytest.fixture
def crop_csv(tmp_path):
    path = tmp_path / "crops.csv"
    path.write_text(
        "crop,state,2020,2021\n"
        "rice,punjab,100,120\n"
        "wheat,punjab,300,310\n"
        "rice,kerala,40,45\n",
        encoding="utf-8",
    )
    return path
