"""PDF chunker — page text extraction via pypdf, then sentence packing."""

from __future__ import annotations

import logging
from typing import Any

import pypdf

from agrirag.db.models import TextChunk
from agrirag.errors import ExtractionError
from agrirag.ingest.base import BaseChunker
from agrirag.ingest.text import SentenceChunker

logger = logging.getLogger(__name__)


class PdfChunker(BaseChunker):
    """Split a PDF document into chunks using pypdf.

    Strategy:
    - Extract text page-by-page via ``pypdf.PdfReader``.
    - A page whose extraction raises is recorded in ``skipped`` and the
      remaining pages are still used; pages with no text are ignored.
    - The joined page text is packed by ``SentenceChunker`` with
      ``doc_type='pdf'`` and the page count in the metadata.
    """

    def chunk(
        self, content: str, extra: dict[str, Any] | None = None, path: str = ""
    ) -> list[TextChunk]:
        """*content* is ignored; the PDF is read directly from *path*."""
        text, total_pages = self._extract_text(path)
        if not text.strip():
            return []
        meta = {**(extra or {}), "total_pages": total_pages}
        splitter = SentenceChunker(chunk_size=self.chunk_size, overlap=self.overlap, doc_type="pdf")
        return splitter.chunk(text, meta, path=path)

    def _extract_text(self, path: str) -> tuple[str, int]:
        """Return (all page text, page count) for the PDF at *path*."""
        try:
            reader = pypdf.PdfReader(path)
            pages = list(reader.pages)
        except Exception as exc:
            raise ExtractionError(f"Failed to open PDF '{path}': {exc}") from exc

        parts: list[str] = []
        for number, page in enumerate(pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as exc:
                logger.warning("Skipping page %d of %s: %s", number, path, exc)
                self._skip(f"page {number}", str(exc))
                continue
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
        return "\n\n".join(parts), len(pages)
