"""CSV chunker — one chunk per row plus one dataset summary chunk.

Also provides ``read_rows()``, the structured-row reader the computation
engine uses to re-read a CSV source directly, independent of chunking.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from agrirag.db.models import RowMetadata, SummaryMetadata, TextChunk
from agrirag.errors import ExtractionError, PartialExtractionFailure
from agrirag.ingest.base import BaseChunker

logger = logging.getLogger(__name__)

Row = dict[str, str]


def parse_rows(content: str) -> tuple[list[str], list[Row], list[PartialExtractionFailure]]:
    """Parse CSV text into ``(headers, rows, skipped)``.

    The first line is the header. Rows with more fields than headers, or that
    the csv module rejects, are skipped and reported; rows with fewer fields
    get empty strings for the missing columns. Blank lines are ignored.
    """
    reader = csv.reader(io.StringIO(content))
    skipped: list[PartialExtractionFailure] = []

    headers: list[str] = []
    for record in _records(reader, skipped):
        if any(cell.strip() for cell in record):
            headers = [h.strip() for h in record]
            break
    if not headers:
        return [], [], skipped

    rows: list[Row] = []
    for record in _records(reader, skipped):
        if not any(cell.strip() for cell in record):
            continue
        if len(record) > len(headers):
            skipped.append(
                PartialExtractionFailure(
                    f"line {reader.line_num}",
                    f"{len(record)} fields for {len(headers)} columns",
                )
            )
            continue
        padded = record + [""] * (len(headers) - len(record))
        rows.append({h: v.strip() for h, v in zip(headers, padded)})

    return headers, rows, skipped


def _records(reader: Any, skipped: list[PartialExtractionFailure]) -> Iterator[list[str]]:
    while True:
        try:
            yield next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            skipped.append(PartialExtractionFailure(f"line {reader.line_num}", str(exc)))


def read_rows(source_location: str | Path) -> list[Row]:
    """Read every well-formed row of the CSV at *source_location*.

    Raises:
        ExtractionError: If the file cannot be opened or decoded.
    """
    try:
        content = Path(source_location).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ExtractionError(f"Cannot read CSV '{source_location}': {exc}") from exc
    _, rows, skipped = parse_rows(content)
    for failure in skipped:
        logger.warning("Skipped malformed row in %s (%s)", source_location, failure)
    return rows


def flatten_row(row: Row) -> str:
    """Render a row as ``"column: value, column: value"``."""
    return ", ".join(f"{key}: {value}" for key, value in row.items())


class TabularChunker(BaseChunker):
    """Split CSV content into row chunks plus a single summary chunk.

    Every row becomes ``"col: value, col: value"`` tagged with RowMetadata.
    One summary chunk ``"CSV Dataset with columns: ... Total rows: n"`` is
    appended so the dataset is retrievable even when no row matches. A table
    with no data rows yields no chunks. Chunk size and overlap do not apply.
    """

    label = "CSV"

    def chunk(
        self, content: str, extra: dict[str, Any] | None = None, path: str = ""
    ) -> list[TextChunk]:
        headers, rows, skipped = parse_rows(content)
        for failure in skipped:
            logger.warning("Skipped malformed row in %s (%s)", path or "<csv>", failure)
        self.skipped.extend(skipped)
        return self.chunk_rows(rows, headers=headers, extra=extra)

    def chunk_rows(
        self,
        rows: list[Row],
        headers: list[str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> list[TextChunk]:
        if not rows:
            return []
        extra = dict(extra or {})
        chunks = [
            TextChunk(
                content=flatten_row(row),
                metadata=RowMetadata(row_index=i, original_row=dict(row), extra=dict(extra)),
            )
            for i, row in enumerate(rows)
        ]
        columns = headers or list(rows[0].keys())
        chunks.append(
            TextChunk(
                content=(
                    f"{self.label} Dataset with columns: {', '.join(columns)}. "
                    f"Total rows: {len(rows)}"
                ),
                metadata=SummaryMetadata(headers=list(columns), total_rows=len(rows), extra=extra),
            )
        )
        return chunks
