"""RAG orchestrator: route a query, then compute or retrieve-and-generate.

``answer()`` is total. Every failure inside either branch is logged and
turned into an explanatory answer with empty sources; nothing propagates to
the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from agrirag.config import AgriragConfig
from agrirag.db.models import DEFAULT_LANGUAGE, DEFAULT_MODEL, Dataset, DatasetStatus, FileType
from agrirag.db.repository import Repository
from agrirag.db.vectors import VectorIndex
from agrirag.errors import LanguageModelError
from agrirag.ingest.embeddings import EmbeddingProvider
from agrirag.rag.assembler import build_context, build_prompt, extract_sources, post_process
from agrirag.rag.classifier import QueryClassifier, QueryKind
from agrirag.rag.computation import ComputationEngine
from agrirag.rag.llm_client import TextGenerator
from agrirag.rag.retriever import RetrieverConfig, retrieve

logger = logging.getLogger(__name__)

RowReader = Callable[[str], list[dict[str, str]]]

COMPUTATION_TYPE = "agricultural_statistics"

INSUFFICIENT_CONTEXT_ANSWER = (
    "I don't have enough information in my knowledge base to answer that question. "
    "Please provide more context or upload relevant documents."
)
NO_DATASETS_ANSWER = (
    "No CSV datasets available for computation. Please upload agricultural data first."
)
ROWS_UNAVAILABLE_ANSWER = (
    "Unable to load CSV data for computation. Please check your uploaded files."
)
COMPUTATION_FAILED_ANSWER = (
    "Error processing computational query. Please check your query format and try again."
)
MODEL_BUSY_ANSWER = (
    "The language model is temporarily unavailable. Please try again in a moment."
)
MODEL_UNAVAILABLE_ANSWER = (
    "The requested language model is unavailable. "
    "Please choose a different model or check your configuration."
)
QUERY_FAILED_ANSWER = (
    "Sorry, I couldn't process that question. Please try again or rephrase it."
)


@dataclass
class RagAnswer:
    answer: str
    sources: list[str] = field(default_factory=list)
    is_computation: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


class RagOrchestrator:
    """Answer questions over the indexed datasets.

    Args:
        store: Dataset lookup for the computational branch.
        index: Vector index searched by the conversational branch.
        embedder: Embeds the query (must match the ingest embedder).
        generator: Language model collaborator.
        classifier: Routes computational vs conversational queries.
        engine: Aggregates rows for computational queries.
        row_reader: Reads the structured rows behind a CSV dataset.
        config: Retrieval depth and generation parameters.
    """

    def __init__(
        self,
        store: Repository,
        index: VectorIndex,
        embedder: EmbeddingProvider,
        generator: TextGenerator,
        classifier: QueryClassifier,
        engine: ComputationEngine,
        row_reader: RowReader,
        config: AgriragConfig | None = None,
    ) -> None:
        self._store = store
        self._index = index
        self._embedder = embedder
        self._generator = generator
        self._classifier = classifier
        self._engine = engine
        self._row_reader = row_reader
        self._config = config or AgriragConfig()

    def answer(
        self,
        query: str,
        model: str | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> RagAnswer:
        try:
            kind = self._classifier.classify(query)
        except Exception:
            logger.exception("Query classification failed")
            return RagAnswer(answer=QUERY_FAILED_ANSWER)

        logger.debug("Query routed as %s", kind.value)
        if kind is QueryKind.COMPUTATIONAL:
            return self._answer_computational(query)
        return self._answer_conversational(query, model or DEFAULT_MODEL, language)

    # ------------------------------------------------------------------
    # Computational branch
    # ------------------------------------------------------------------

    def _answer_computational(self, query: str) -> RagAnswer:
        try:
            datasets = [
                d
                for d in self._store.list_datasets()
                if d.file_type is FileType.CSV and d.status is DatasetStatus.READY
            ]
            if not datasets:
                return RagAnswer(answer=NO_DATASETS_ANSWER, is_computation=True)

            names = [d.name for d in datasets]
            rows = self._load_rows(datasets)
            if not rows:
                return RagAnswer(answer=ROWS_UNAVAILABLE_ANSWER, sources=names, is_computation=True)

            result = self._engine.compute(query, rows)
            return RagAnswer(
                answer=result.text,
                sources=names,
                is_computation=True,
                metadata={
                    "dataset_count": len(datasets),
                    "computation_type": COMPUTATION_TYPE,
                    "total_rows": len(rows),
                    "outcome": result.outcome.value,
                },
            )
        except Exception:
            logger.exception("Computational query failed: %r", query)
            return RagAnswer(answer=COMPUTATION_FAILED_ANSWER, is_computation=True)

    def _load_rows(self, datasets: list[Dataset]) -> list[dict[str, str]]:
        rows: list[dict[str, str]] = []
        for dataset in datasets:
            try:
                rows.extend(self._row_reader(dataset.source_location))
            except Exception as exc:
                logger.warning("Skipping dataset %s: cannot load rows (%s)", dataset.name, exc)
        return rows

    # ------------------------------------------------------------------
    # Conversational branch
    # ------------------------------------------------------------------

    def _answer_conversational(self, query: str, model: str, language: str) -> RagAnswer:
        try:
            results = retrieve(
                query,
                self._index,
                self._embedder,
                RetrieverConfig(top_k=self._config.retrieval.top_k),
            )
            if not results:
                return RagAnswer(answer=INSUFFICIENT_CONTEXT_ANSWER)

            prompt = build_prompt(query, build_context(results), language)
            generation = self._config.generation
            raw = self._generator.generate(
                prompt,
                model,
                max_tokens=generation.max_tokens,
                temperature=generation.temperature,
            )
            return RagAnswer(
                answer=post_process(raw),
                sources=extract_sources(results),
                metadata={"chunks_retrieved": len(results), "model": model},
            )
        except LanguageModelError as exc:
            logger.error("Generation failed (%s): %s", exc.kind.value, exc)
            return RagAnswer(answer=MODEL_BUSY_ANSWER if exc.transient else MODEL_UNAVAILABLE_ANSWER)
        except Exception:
            logger.exception("Conversational query failed: %r", query)
            return RagAnswer(answer=QUERY_FAILED_ANSWER)
