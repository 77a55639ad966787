"""Tests for the dense retriever."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from agrirag.db.models import DocumentChunk, TextMetadata
from agrirag.errors import EmbeddingProviderError
from agrirag.ingest.embeddings import EmbeddingProvider
from agrirag.rag.retriever import RetrieverConfig, retrieve


def _index_texts(index, embedder, *texts: str) -> list[DocumentChunk]:
    chunks = []
    for i, text in enumerate(texts):
        chunk = DocumentChunk(
            content=text,
            metadata=TextMetadata(chunk_index=i, length=len(text)),
            dataset_id="ds-1",
            seq=i,
        )
        index.insert(chunk, embedder.embed(text))
        chunks.append(chunk)
    return chunks


def test_default_top_k():
    assert RetrieverConfig().top_k == 5


def test_empty_index_skips_embedding(index):
    embedder = MagicMock(spec=EmbeddingProvider)
    assert retrieve("anything", index, embedder, RetrieverConfig()) == []
    embedder.embed.assert_not_called()
    embedder.embed_batch.assert_not_called()


def test_identical_text_ranks_first(index, embedder):
    _index_texts(index, embedder, "Rice needs water.", "Wheat likes cold.", "Maize is tall.")

    results = retrieve("Wheat likes cold.", index, embedder, RetrieverConfig(top_k=3))

    assert results[0].chunk.content == "Wheat likes cold."
    assert results[0].score == pytest.approx(1.0)
    assert results[0].rank == 1
    assert [r.rank for r in results] == [1, 2, 3]
    assert all(a.score >= b.score for a, b in zip(results, results[1:]))


def test_top_k_bounds_results(index, embedder):
    _index_texts(index, embedder, "a", "b", "c", "d")
    assert len(retrieve("a", index, embedder, RetrieverConfig(top_k=2))) == 2
    assert len(retrieve("a", index, embedder, RetrieverConfig(top_k=10))) == 4


def test_embedding_failure_propagates(index, embedder):
    _index_texts(index, embedder, "a")
    failing = MagicMock(spec=EmbeddingProvider)
    failing.embed.side_effect = EmbeddingProviderError("down", transient=True)
    with pytest.raises(EmbeddingProviderError):
        retrieve("a", index, failing, RetrieverConfig())
