"""Base chunker interface for all agrirag source types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from agrirag.db.models import TextChunk
from agrirag.errors import PartialExtractionFailure


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Sizes are measured in characters. ``overlap`` is the number of trailing
    characters of one chunk that seed the next.

    Units that fail to extract (a malformed row, an unreadable page) are
    appended to ``skipped`` and the rest of the document is still chunked.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.skipped: list[PartialExtractionFailure] = []

    @abstractmethod
    def chunk(
        self, content: str, extra: dict[str, Any] | None = None, path: str = ""
    ) -> list[TextChunk]:
        """Split *content* into TextChunks.

        Args:
            content: Full decoded text of the source document.
            extra: Caller metadata merged into every chunk (document type,
                page count, file name...).
            path: Original file path (used by binary formats and in messages).

        Returns:
            Ordered list of TextChunks.
        """

    def _skip(self, unit: str, reason: str) -> None:
        self.skipped.append(PartialExtractionFailure(unit, reason))
