"""Dense retriever: embed the query, rank indexed chunks by cosine similarity.

The query is embedded with the same provider used at ingest time, so the
vectors share one dimensionality. Ties in the index are broken by insertion
sequence, which keeps results reproducible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from agrirag.db.vectors import ScoredChunk, VectorIndex
from agrirag.ingest.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass
class RetrieverConfig:
    """Configuration for the dense retriever.

    Attributes:
        top_k: Maximum number of chunks to return.
    """

    top_k: int = 5


def retrieve(
    query: str,
    index: VectorIndex,
    embedder: EmbeddingProvider,
    config: RetrieverConfig,
) -> list[ScoredChunk]:
    """Return at most ``config.top_k`` chunks, best-first.

    An empty index returns ``[]`` without calling the embedding provider.

    Raises:
        EmbeddingProviderError: If the query cannot be embedded.
    """
    if len(index) == 0:
        return []
    query_vector = embedder.embed(query)
    results = index.search(query_vector, config.top_k)
    logger.debug("Retrieved %d of %d indexed chunks", len(results), len(index))
    return results
