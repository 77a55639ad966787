"""agrirag storage layer: models, stores and the vector index."""

from agrirag.db.connection import Database
from agrirag.db.migrations import MIGRATIONS, run_migrations
from agrirag.db.repository import MemoryRepository, Repository, SqliteRepository
from agrirag.db.schema import initialize
from agrirag.db.vectors import InMemoryVectorIndex, ScoredChunk, VectorIndex, cosine_similarity

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "MemoryRepository",
    "SqliteRepository",
    "VectorIndex",
    "InMemoryVectorIndex",
    "ScoredChunk",
    "cosine_similarity",
]
