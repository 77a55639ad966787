"""Vector index: cosine similarity over chunk embeddings, computed by sqlite-vec.

``VectorIndex`` is the contract the retriever depends on. The shipped
implementation keeps its vectors in a private in-memory SQLite database and
ranks them with sqlite-vec's ``vec_distance_cosine``. It is an exact scan,
which is adequate for an interactive corpus of a few thousand chunks.
"""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import sqlite_vec

from agrirag.db.connection import Database
from agrirag.db.models import DocumentChunk

_VECTORS_SCHEMA = """
CREATE TABLE vectors (
    position INTEGER PRIMARY KEY,
    chunk_id TEXT NOT NULL UNIQUE,
    is_zero INTEGER NOT NULL,
    embedding BLOB NOT NULL
)
"""

# Zero-magnitude vectors have no direction; they score 0.0 (distance 1.0).
_SEARCH_SQL = """
SELECT chunk_id,
       CASE WHEN is_zero OR :query_zero THEN 1.0
            ELSE vec_distance_cosine(embedding, :query) END AS distance
FROM vectors
ORDER BY distance, position
LIMIT :k
"""

_scalar_lock = threading.Lock()
_scalar_conn: sqlite3.Connection | None = None


def _is_zero(vector: Sequence[float]) -> bool:
    return not any(vector)


def _similarity(distance: float) -> float:
    return max(-1.0, min(1.0, 1.0 - distance))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``a·b / (‖a‖·‖b‖)``; 0.0 if either vector has zero magnitude.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    global _scalar_conn
    if len(a) != len(b):
        raise ValueError(f"vector length mismatch: {len(a)} != {len(b)}")
    if _is_zero(a) or _is_zero(b):
        return 0.0
    with _scalar_lock:
        if _scalar_conn is None:
            _scalar_conn = Database(":memory:").connect()
        row = _scalar_conn.execute(
            "SELECT vec_distance_cosine(?, ?)",
            (sqlite_vec.serialize_float32(list(a)), sqlite_vec.serialize_float32(list(b))),
        ).fetchone()
    return _similarity(row[0])


@dataclass
class ScoredChunk:
    """A retrieved chunk with its similarity to the query.

    Attributes:
        chunk: The stored DocumentChunk.
        score: Cosine similarity in [-1, 1].
        rank: 1-based position in the result list.
    """

    chunk: DocumentChunk
    score: float
    rank: int


class VectorIndex(ABC):
    """Top-K similarity search over chunk vectors."""

    @abstractmethod
    def insert(self, chunk: DocumentChunk, vector: Sequence[float]) -> None:
        """Add or replace the vector for *chunk* (idempotent per chunk id)."""

    @abstractmethod
    def search(self, query_vector: Sequence[float], k: int) -> list[ScoredChunk]:
        """Return at most *k* chunks, best first."""

    @abstractmethod
    def remove(self, chunk_ids: Iterable[str]) -> int:
        """Drop the given chunk ids; unknown ids are ignored. Returns the number removed."""

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryVectorIndex(VectorIndex):
    """Exact cosine index on an in-memory sqlite-vec database; ties keep insertion order.

    Args:
        dimensions: Expected vector length. When None, the length of the first
            inserted vector is adopted.
    """

    def __init__(self, dimensions: int | None = None) -> None:
        if dimensions is not None and dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.dimensions = dimensions
        self._chunks: dict[str, DocumentChunk] = {}
        self._lock = threading.Lock()
        self._conn = Database(":memory:").connect()
        self._conn.isolation_level = None
        self._conn.execute(_VECTORS_SCHEMA)

    @classmethod
    def from_chunks(
        cls, chunks: Iterable[DocumentChunk], dimensions: int | None = None
    ) -> InMemoryVectorIndex:
        """Build an index from stored chunks, skipping those without an embedding."""
        index = cls(dimensions=dimensions)
        for chunk in sorted(chunks, key=lambda c: c.seq):
            if chunk.embedding:
                index.insert(chunk, chunk.embedding)
        return index

    def insert(self, chunk: DocumentChunk, vector: Sequence[float]) -> None:
        vec = [float(x) for x in vector]
        with self._lock:
            if self.dimensions is None:
                if not vec:
                    raise ValueError("cannot insert an empty vector")
                self.dimensions = len(vec)
            if len(vec) != self.dimensions:
                raise ValueError(
                    f"vector has {len(vec)} dimensions, index expects {self.dimensions}"
                )
            blob = sqlite_vec.serialize_float32(vec)
            if chunk.id in self._chunks:
                # Re-insert keeps the original position.
                self._conn.execute(
                    "UPDATE vectors SET is_zero = ?, embedding = ? WHERE chunk_id = ?",
                    (_is_zero(vec), blob, chunk.id),
                )
            else:
                self._conn.execute(
                    "INSERT INTO vectors (chunk_id, is_zero, embedding) VALUES (?, ?, ?)",
                    (chunk.id, _is_zero(vec), blob),
                )
            self._chunks[chunk.id] = chunk

    def search(self, query_vector: Sequence[float], k: int) -> list[ScoredChunk]:
        if k <= 0:
            return []
        with self._lock:
            if not self._chunks:
                return []
            if len(query_vector) != self.dimensions:
                raise ValueError(
                    f"query has {len(query_vector)} dimensions, index expects {self.dimensions}"
                )
            query = [float(x) for x in query_vector]
            rows = self._conn.execute(
                _SEARCH_SQL,
                {
                    "query": sqlite_vec.serialize_float32(query),
                    "query_zero": _is_zero(query),
                    "k": k,
                },
            ).fetchall()
            return [
                ScoredChunk(
                    chunk=self._chunks[row["chunk_id"]],
                    score=_similarity(row["distance"]),
                    rank=i + 1,
                )
                for i, row in enumerate(rows)
            ]

    def remove(self, chunk_ids: Iterable[str]) -> int:
        with self._lock:
            doomed = [cid for cid in dict.fromkeys(chunk_ids) if cid in self._chunks]
            self._conn.executemany(
                "DELETE FROM vectors WHERE chunk_id = ?", [(cid,) for cid in doomed]
            )
            for cid in doomed:
                del self._chunks[cid]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)
