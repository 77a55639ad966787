"""Route a file to the right chunker by type.

  .csv               → TabularChunker (rows + summary)
  .pdf               → PdfChunker
  .txt               → SentenceChunker
  .jpg .jpeg .png    → rejected (UnsupportedInputType) — no OCR
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from agrirag.db.models import FileType, TextChunk
from agrirag.errors import ExtractionError, UnsupportedInputType
from agrirag.ingest.base import BaseChunker
from agrirag.ingest.pdf import PdfChunker
from agrirag.ingest.tabular import TabularChunker
from agrirag.ingest.text import SentenceChunker


def make_chunker(file_type: FileType, chunk_size: int = 1000, overlap: int = 200) -> BaseChunker:
    """Return a chunker for *file_type*.

    Raises:
        UnsupportedInputType: For images and any type without a chunker.
    """
    if file_type is FileType.CSV:
        return TabularChunker(chunk_size=chunk_size, overlap=overlap)
    if file_type is FileType.PDF:
        return PdfChunker(chunk_size=chunk_size, overlap=overlap)
    if file_type is FileType.TXT:
        return SentenceChunker(chunk_size=chunk_size, overlap=overlap, doc_type="text")
    raise UnsupportedInputType(file_type.value)


def load_chunks(
    path: str | Path,
    file_type: FileType | None = None,
    *,
    chunk_size: int = 1000,
    overlap: int = 200,
    extra: dict[str, Any] | None = None,
) -> list[TextChunk]:
    """Read the file at *path* and chunk it.

    The type is checked before the file is touched, so an unsupported type
    never produces partial output.

    Raises:
        UnsupportedInputType: Unknown extension or an image.
        ExtractionError: The file cannot be opened or decoded.
    """
    path = Path(path)
    resolved = file_type or FileType.from_path(path)
    chunker = make_chunker(resolved, chunk_size=chunk_size, overlap=overlap)

    if resolved is FileType.PDF:
        return chunker.chunk("", extra, path=str(path))

    try:
        encoding = "utf-8-sig" if resolved is FileType.CSV else "utf-8"
        content = path.read_text(encoding=encoding, errors="replace")
    except OSError as exc:
        raise ExtractionError(f"Cannot read '{path}': {exc}") from exc
    return chunker.chunk(content, extra, path=str(path))
