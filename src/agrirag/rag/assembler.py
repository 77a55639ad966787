"""Prompt assembly and answer post-processing for the conversational branch.

  1. Context: retrieved chunk contents joined by blank lines, in rank order.
  2. Prompt: role statement, optional language instruction, context,
     question, fixed answer-quality instructions, trailing "Answer:".
  3. Post-processing: trim and drop label prefixes the model may echo.
  4. Sources: one display name per chunk, de-duplicated, first seen wins.
"""

from __future__ import annotations

from collections.abc import Iterable

from agrirag.db.models import DEFAULT_LANGUAGE, ROW_TYPE, SUMMARY_TYPE, DocumentChunk
from agrirag.db.vectors import ScoredChunk

_ROLE = (
    "You are an expert agricultural assistant with access to agricultural "
    "datasets and research documents. "
)

_INSTRUCTIONS = (
    "Instructions:\n"
    "- Provide accurate, helpful information based on the context\n"
    "- If the context doesn't contain enough information, say so clearly\n"
    "- Focus on practical agricultural advice and data-driven insights\n"
    "- Be concise but comprehensive\n"
    "- If relevant, mention specific data points or statistics from the context"
)

_ECHOED_PREFIXES = ("Answer:", "Response:", "A:")

TABULAR_SOURCE = "CSV Dataset"
UNKNOWN_SOURCE = "Unknown source"


def build_context(results: Iterable[ScoredChunk]) -> str:
    """Join chunk contents best-first by retrieval rank."""
    return "\n\n".join(r.chunk.content for r in sorted(results, key=lambda r: r.rank))


def build_prompt(query: str, context: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Render the RAG prompt for *query* over *context*."""
    language_instruction = (
        f"Please respond in {language}. " if language.lower() != DEFAULT_LANGUAGE else ""
    )
    return (
        f"{_ROLE}\n"
        f"{language_instruction}Use the following context to answer the user's "
        f"question clearly and accurately.\n\n"
        f"Context:\n{context}\n\n"
        f"Question: {query}\n\n"
        f"{_INSTRUCTIONS}\n\n"
        f"Answer:"
    )


def post_process(response: str) -> str:
    """Trim *response* and strip each echoed label prefix in turn."""
    cleaned = response.strip()
    for prefix in _ECHOED_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
    return cleaned


def source_name(chunk: DocumentChunk) -> str:
    """Display name for the document a chunk came from."""
    meta = chunk.metadata_dict
    file_name = meta.get("file_name")
    if file_name:
        return str(file_name)
    kind = meta.get("type")
    if kind in (ROW_TYPE, SUMMARY_TYPE):
        return TABULAR_SOURCE
    if kind and kind != "unknown":
        return str(kind)
    return UNKNOWN_SOURCE


def extract_sources(results: Iterable[ScoredChunk]) -> list[str]:
    return list(dict.fromkeys(source_name(r.chunk) for r in results))
