"""Repository pattern for datasets, chunks, conversations and messages.

``Repository`` is the abstract persistence interface the core depends on.
``MemoryRepository`` keeps everything in process; ``SqliteRepository`` writes
to a local database file opened through ``agrirag.db.connection.Database``.
Both are safe to share between indexing threads.
"""

from __future__ import annotations

import itertools
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime

from agrirag.db.models import (
    Conversation,
    Dataset,
    DatasetStatus,
    DocumentChunk,
    FileType,
    Message,
    MessageRole,
    can_transition,
    metadata_from_dict,
)
from agrirag.errors import InvalidStatusTransition


class Repository(ABC):
    """Abstract store used by the indexing pipeline, orchestrator and chat service."""

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    @abstractmethod
    def create_dataset(self, dataset: Dataset) -> Dataset:
        """Persist a new dataset (normally in ``processing``) and return it."""

    @abstractmethod
    def get_dataset(self, dataset_id: str) -> Dataset | None: ...

    @abstractmethod
    def list_datasets(self) -> list[Dataset]:
        """Return all datasets, oldest first."""

    @abstractmethod
    def update_dataset_status(self, dataset_id: str, status: DatasetStatus) -> Dataset:
        """Move a dataset to *status*.

        Raises:
            KeyError: Unknown dataset.
            InvalidStatusTransition: The move is not processing → ready/error.
        """

    @abstractmethod
    def delete_dataset(self, dataset_id: str) -> bool:
        """Delete a dataset and all its chunks. Returns False if it did not exist."""

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    @abstractmethod
    def add_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Persist *chunks* in order, assigning each a sequence number."""

    @abstractmethod
    def get_chunk(self, chunk_id: str) -> DocumentChunk | None: ...

    @abstractmethod
    def list_chunks(self) -> list[DocumentChunk]:
        """Return every stored chunk in insertion order."""

    @abstractmethod
    def list_chunks_by_dataset(self, dataset_id: str) -> list[DocumentChunk]: ...

    @abstractmethod
    def delete_chunks(self, chunk_ids: list[str]) -> int:
        """Delete the given chunks; unknown ids are ignored. Returns the number removed."""

    # ------------------------------------------------------------------
    # Conversations + messages
    # ------------------------------------------------------------------

    @abstractmethod
    def create_conversation(self, conversation: Conversation) -> Conversation: ...

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    @abstractmethod
    def list_conversations(self) -> list[Conversation]: ...

    @abstractmethod
    def add_message(self, message: Message) -> Message:
        """Append a message to its conversation.

        Raises:
            KeyError: The conversation does not exist.
        """

    @abstractmethod
    def get_message(self, message_id: str) -> Message | None: ...

    @abstractmethod
    def list_messages(self, conversation_id: str) -> list[Message]:
        """Return a conversation's messages in creation order."""


def _check_transition(dataset: Dataset, status: DatasetStatus) -> None:
    if not can_transition(dataset.status, status):
        raise InvalidStatusTransition(dataset.id, dataset.status.value, status.value)


# ------------------------------------------------------------------
# In-memory implementation
# ------------------------------------------------------------------


class MemoryRepository(Repository):
    """Dict-backed store; every operation holds a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._datasets: dict[str, Dataset] = {}
        self._chunks: dict[str, DocumentChunk] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, Message] = {}

    def create_dataset(self, dataset: Dataset) -> Dataset:
        with self._lock:
            self._datasets[dataset.id] = dataset
        return dataset

    def get_dataset(self, dataset_id: str) -> Dataset | None:
        with self._lock:
            return self._datasets.get(dataset_id)

    def list_datasets(self) -> list[Dataset]:
        with self._lock:
            return sorted(self._datasets.values(), key=lambda d: d.created_at)

    def update_dataset_status(self, dataset_id: str, status: DatasetStatus) -> Dataset:
        with self._lock:
            dataset = self._datasets.get(dataset_id)
            if dataset is None:
                raise KeyError(dataset_id)
            _check_transition(dataset, status)
            dataset.status = status
            return dataset

    def delete_dataset(self, dataset_id: str) -> bool:
        with self._lock:
            if self._datasets.pop(dataset_id, None) is None:
                return False
            self._drop_chunks(dataset_id)
            return True

    def add_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        with self._lock:
            for chunk in chunks:
                chunk.seq = next(self._seq)
                self._chunks[chunk.id] = chunk
        return chunks

    def get_chunk(self, chunk_id: str) -> DocumentChunk | None:
        with self._lock:
            return self._chunks.get(chunk_id)

    def list_chunks(self) -> list[DocumentChunk]:
        with self._lock:
            return sorted(self._chunks.values(), key=lambda c: c.seq)

    def list_chunks_by_dataset(self, dataset_id: str) -> list[DocumentChunk]:
        with self._lock:
            return sorted(
                (c for c in self._chunks.values() if c.dataset_id == dataset_id),
                key=lambda c: c.seq,
            )

    def delete_chunks(self, chunk_ids: list[str]) -> int:
        with self._lock:
            return sum(self._chunks.pop(cid, None) is not None for cid in set(chunk_ids))

    def _drop_chunks(self, dataset_id: str) -> int:
        doomed = [cid for cid, c in self._chunks.items() if c.dataset_id == dataset_id]
        for cid in doomed:
            del self._chunks[cid]
        return len(doomed)

    def create_conversation(self, conversation: Conversation) -> Conversation:
        with self._lock:
            self._conversations[conversation.id] = conversation
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    def list_conversations(self) -> list[Conversation]:
        with self._lock:
            return sorted(self._conversations.values(), key=lambda c: c.created_at)

    def add_message(self, message: Message) -> Message:
        with self._lock:
            if message.conversation_id not in self._conversations:
                raise KeyError(message.conversation_id)
            message.seq = next(self._seq)
            self._messages[message.id] = message
        return message

    def get_message(self, message_id: str) -> Message | None:
        with self._lock:
            return self._messages.get(message_id)

    def list_messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            return sorted(
                (m for m in self._messages.values() if m.conversation_id == conversation_id),
                key=lambda m: (m.created_at, m.seq),
            )


# ------------------------------------------------------------------
# SQLite implementation
# ------------------------------------------------------------------


class SqliteRepository(Repository):
    """Data access layer over an open sqlite3.Connection.

    The connection is owned by the caller and must be closed after use. It
    must have the schema initialised (see agrirag.db.schema.initialize).
    Chunk and message sequence numbers are the SQLite rowids.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    def create_dataset(self, dataset: Dataset) -> Dataset:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO datasets (id, name, description, file_type, source_location, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    dataset.id,
                    dataset.name,
                    dataset.description,
                    dataset.file_type.value,
                    dataset.source_location,
                    dataset.status.value,
                    dataset.created_at.isoformat(),
                ),
            )
            self._conn.commit()
        return dataset

    def get_dataset(self, dataset_id: str) -> Dataset | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM datasets WHERE id = ?", (dataset_id,)
            ).fetchone()
        return _row_to_dataset(row) if row else None

    def list_datasets(self) -> list[Dataset]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM datasets ORDER BY created_at, rowid"
            ).fetchall()
        return [_row_to_dataset(r) for r in rows]

    def update_dataset_status(self, dataset_id: str, status: DatasetStatus) -> Dataset:
        with self._lock:
            dataset = self.get_dataset(dataset_id)
            if dataset is None:
                raise KeyError(dataset_id)
            _check_transition(dataset, status)
            self._conn.execute(
                "UPDATE datasets SET status = ? WHERE id = ?", (status.value, dataset_id)
            )
            self._conn.commit()
            dataset.status = status
            return dataset

    def delete_dataset(self, dataset_id: str) -> bool:
        with self._lock:
            # ON DELETE CASCADE removes the chunks
            cur = self._conn.execute("DELETE FROM datasets WHERE id = ?", (dataset_id,))
            self._conn.commit()
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Insert all chunks in one transaction; nothing is stored on failure."""
        with self._lock:
            try:
                for chunk in chunks:
                    cur = self._conn.execute(
                        """
                        INSERT INTO chunks (id, dataset_id, content, embedding, metadata, created_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            chunk.id,
                            chunk.dataset_id,
                            chunk.content,
                            json.dumps(chunk.embedding) if chunk.embedding is not None else None,
                            json.dumps(chunk.metadata_dict),
                            chunk.created_at.isoformat(),
                        ),
                    )
                    chunk.seq = cur.lastrowid
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        return chunks

    def get_chunk(self, chunk_id: str) -> DocumentChunk | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT rowid, * FROM chunks WHERE id = ?", (chunk_id,)
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks(self) -> list[DocumentChunk]:
        with self._lock:
            rows = self._conn.execute("SELECT rowid, * FROM chunks ORDER BY rowid").fetchall()
        return [_row_to_chunk(r) for r in rows]

    def list_chunks_by_dataset(self, dataset_id: str) -> list[DocumentChunk]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT rowid, * FROM chunks WHERE dataset_id = ? ORDER BY rowid",
                (dataset_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def delete_chunks(self, chunk_ids: list[str]) -> int:
        if not chunk_ids:
            return 0
        with self._lock:
            cur = self._conn.executemany(
                "DELETE FROM chunks WHERE id = ?", [(cid,) for cid in set(chunk_ids)]
            )
            self._conn.commit()
            return cur.rowcount

    # ------------------------------------------------------------------
    # Conversations + messages
    # ------------------------------------------------------------------

    def create_conversation(self, conversation: Conversation) -> Conversation:
        with self._lock:
            self._conn.execute(
                "INSERT INTO conversations (id, title, created_at) VALUES (?, ?, ?)",
                (conversation.id, conversation.title, conversation.created_at.isoformat()),
            )
            self._conn.commit()
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
        return _row_to_conversation(row) if row else None

    def list_conversations(self) -> list[Conversation]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM conversations ORDER BY created_at, rowid"
            ).fetchall()
        return [_row_to_conversation(r) for r in rows]

    def add_message(self, message: Message) -> Message:
        with self._lock:
            if self.get_conversation(message.conversation_id) is None:
                raise KeyError(message.conversation_id)
            cur = self._conn.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.conversation_id,
                    message.role.value,
                    message.content,
                    json.dumps(message.metadata),
                    message.created_at.isoformat(),
                ),
            )
            self._conn.commit()
            message.seq = cur.lastrowid
        return message

    def get_message(self, message_id: str) -> Message | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT rowid, * FROM messages WHERE id = ?", (message_id,)
            ).fetchone()
        return _row_to_message(row) if row else None

    def list_messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT rowid, * FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
                (conversation_id,),
            ).fetchall()
        return [_row_to_message(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_dataset(row: sqlite3.Row) -> Dataset:
    return Dataset(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        file_type=FileType(row["file_type"]),
        source_location=row["source_location"],
        status=DatasetStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_chunk(row: sqlite3.Row) -> DocumentChunk:
    return DocumentChunk(
        id=row["id"],
        dataset_id=row["dataset_id"],
        content=row["content"],
        embedding=json.loads(row["embedding"]) if row["embedding"] is not None else None,
        metadata=metadata_from_dict(json.loads(row["metadata"])),
        seq=row["rowid"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=MessageRole(row["role"]),
        content=row["content"],
        metadata=json.loads(row["metadata"]),
        seq=row["rowid"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
