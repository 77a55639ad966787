"""agrirag ingest pipeline: chunkers, embedding providers, dataset indexing."""

from agrirag.ingest.base import BaseChunker
from agrirag.ingest.pdf import PdfChunker
from agrirag.ingest.tabular import TabularChunker, read_rows
from agrirag.ingest.text import SentenceChunker

__all__ = [
    "BaseChunker",
    "PdfChunker",
    "SentenceChunker",
    "TabularChunker",
    "read_rows",
]
