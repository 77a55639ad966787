"""Free-text chunker — sentence packing with character overlap."""

from __future__ import annotations

import re
from typing import Any

from agrirag.db.models import TextChunk, TextMetadata
from agrirag.ingest.base import BaseChunker

_TERMINATORS = re.compile(r"([.!?]+)")


def split_sentences(text: str) -> list[str]:
    """Split *text* on runs of '.', '!' and '?', keeping each terminator.

    Blank segments are discarded; surrounding whitespace is stripped.
    """
    parts = _TERMINATORS.split(text)
    sentences: list[str] = []
    for i in range(0, len(parts), 2):
        body = parts[i].strip()
        if not body:
            continue
        terminator = parts[i + 1] if i + 1 < len(parts) else ""
        sentences.append(body + terminator)
    return sentences


class SentenceChunker(BaseChunker):
    """Greedily pack sentences into chunks of at most ``chunk_size`` characters.

    When the next sentence would push the running length past ``chunk_size``
    the current chunk is emitted and the next one starts with the last
    ``overlap`` characters of it. A sentence longer than ``chunk_size`` is
    emitted whole rather than cut.

    The running length counts sentence characters only (plus the carried
    overlap), so any input shorter than ``chunk_size`` yields one chunk.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200, doc_type: str = "text") -> None:
        super().__init__(chunk_size=chunk_size, overlap=overlap)
        self.doc_type = doc_type

    def chunk(
        self, content: str, extra: dict[str, Any] | None = None, path: str = ""
    ) -> list[TextChunk]:
        if not content.strip():
            return []

        chunks: list[TextChunk] = []
        parts: list[str] = []
        length = 0

        for sentence in split_sentences(content):
            if parts and length + len(sentence) > self.chunk_size:
                emitted = self._emit(chunks, parts, extra)
                tail = emitted[-self.overlap:].lstrip() if self.overlap else ""
                parts = [tail] if tail else []
                length = len(tail)
            parts.append(sentence)
            length += len(sentence)

        if parts:
            self._emit(chunks, parts, extra)
        return chunks

    def _emit(
        self, chunks: list[TextChunk], parts: list[str], extra: dict[str, Any] | None
    ) -> str:
        text = " ".join(parts).strip()
        if text:
            chunks.append(
                TextChunk(
                    content=text,
                    metadata=TextMetadata(
                        chunk_index=len(chunks),
                        length=len(text),
                        doc_type=self.doc_type,
                        extra=dict(extra or {}),
                    ),
                )
            )
        return text
