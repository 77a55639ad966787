"""Domain models for datasets, chunks, conversations and queries."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Union

from agrirag.errors import UnsupportedInputType


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# Enumerations
# ------------------------------------------------------------------


class FileType(str, Enum):
    CSV = "csv"
    PDF = "pdf"
    TXT = "txt"
    IMAGE = "image"

    @classmethod
    def from_path(cls, path: str | Path) -> FileType:
        """Infer the file type from the extension of *path*.

        Raises:
            UnsupportedInputType: For extensions outside the upload allow-list.
        """
        ext = Path(path).suffix.lower().lstrip(".")
        if ext in _EXTENSION_TYPES:
            return _EXTENSION_TYPES[ext]
        raise UnsupportedInputType(ext or str(path))


_EXTENSION_TYPES: dict[str, FileType] = {
    "csv": FileType.CSV,
    "pdf": FileType.PDF,
    "txt": FileType.TXT,
    "jpg": FileType.IMAGE,
    "jpeg": FileType.IMAGE,
    "png": FileType.IMAGE,
}


class DatasetStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


# processing → ready | error; ready and error are terminal.
_ALLOWED_TRANSITIONS: dict[DatasetStatus, frozenset[DatasetStatus]] = {
    DatasetStatus.PROCESSING: frozenset({DatasetStatus.READY, DatasetStatus.ERROR}),
    DatasetStatus.READY: frozenset(),
    DatasetStatus.ERROR: frozenset(),
}


def can_transition(current: DatasetStatus, requested: DatasetStatus) -> bool:
    return requested == current or requested in _ALLOWED_TRANSITIONS[current]


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# ------------------------------------------------------------------
# Chunk metadata: tagged union
# ------------------------------------------------------------------

ROW_TYPE = "row"
SUMMARY_TYPE = "summary"


@dataclass
class RowMetadata:
    """One CSV row rendered as a chunk."""

    row_index: int
    original_row: dict[str, str]
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return ROW_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "type": ROW_TYPE,
            "row_index": self.row_index,
            "original_row": dict(self.original_row),
        }


@dataclass
class SummaryMetadata:
    """The single descriptive chunk emitted per tabular dataset."""

    headers: list[str]
    total_rows: int
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return SUMMARY_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "type": SUMMARY_TYPE,
            "headers": list(self.headers),
            "total_rows": self.total_rows,
        }


@dataclass
class TextMetadata:
    """A window of free text; *doc_type* is 'text' or 'pdf'."""

    chunk_index: int
    length: int
    doc_type: str = "text"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.doc_type

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "type": self.doc_type,
            "chunk_index": self.chunk_index,
            "length": self.length,
        }


ChunkMetadata = Union[RowMetadata, SummaryMetadata, TextMetadata]

_ROW_KEYS = {"type", "row_index", "original_row"}
_SUMMARY_KEYS = {"type", "headers", "total_rows"}
_TEXT_KEYS = {"type", "chunk_index", "length"}


def metadata_from_dict(data: dict[str, Any]) -> ChunkMetadata:
    """Rebuild the right metadata variant from a plain mapping.

    Unrecognised keys are kept in ``extra``. A mapping without a known shape
    becomes a ``TextMetadata`` whose ``doc_type`` is the declared type (or
    'unknown').
    """
    kind = data.get("type")
    if kind == ROW_TYPE:
        return RowMetadata(
            row_index=int(data.get("row_index", 0)),
            original_row=dict(data.get("original_row") or {}),
            extra={k: v for k, v in data.items() if k not in _ROW_KEYS},
        )
    if kind == SUMMARY_TYPE:
        return SummaryMetadata(
            headers=list(data.get("headers") or []),
            total_rows=int(data.get("total_rows", 0)),
            extra={k: v for k, v in data.items() if k not in _SUMMARY_KEYS},
        )
    return TextMetadata(
        chunk_index=int(data.get("chunk_index", 0)),
        length=int(data.get("length", 0)),
        doc_type=str(kind) if kind else "unknown",
        extra={k: v for k, v in data.items() if k not in _TEXT_KEYS},
    )


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


@dataclass
class TextChunk:
    """Chunker output: content plus metadata, not yet owned by a dataset."""

    content: str
    metadata: ChunkMetadata


@dataclass
class Dataset:
    name: str
    file_type: FileType
    source_location: str
    status: DatasetStatus = DatasetStatus.PROCESSING
    description: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class DocumentChunk:
    content: str
    metadata: ChunkMetadata
    dataset_id: str | None = None  # None for orphaned chunks
    embedding: list[float] | None = None
    id: str = field(default_factory=new_id)
    seq: int = 0  # tie-break only; assigned by the store
    created_at: datetime = field(default_factory=utcnow)

    @property
    def metadata_dict(self) -> dict[str, Any]:
        return self.metadata.to_dict()


@dataclass
class Conversation:
    title: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Message:
    conversation_id: str
    role: MessageRole
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    seq: int = 0
    created_at: datetime = field(default_factory=utcnow)


DEFAULT_MODEL = "default-instruct-model"
DEFAULT_LANGUAGE = "english"


@dataclass
class QueryRequest:
    message: str
    conversation_id: str | None = None
    model: str = DEFAULT_MODEL
    language: str = DEFAULT_LANGUAGE

    def __post_init__(self) -> None:
        if not self.message or not self.message.strip():
            raise ValueError("message must be a non-empty string")
