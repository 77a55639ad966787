"""Tests for embedding providers (litellm is always mocked)."""

from __future__ import annotations

import math
from unittest.mock import MagicMock, patch

import pytest

from agrirag.config import EmbeddingCfg
from agrirag.errors import EmbeddingProviderError
from agrirag.ingest.embeddings import (
    HashEmbeddingProvider,
    LiteLLMEmbeddingProvider,
    build_embedding_provider,
    string_hash,
)


def _response(vectors, with_index: bool = True):
    resp = MagicMock()
    resp.data = [
        {"index": i, "embedding": v} if with_index else {"embedding": v}
        for i, v in enumerate(vectors)
    ]
    return resp


# ------------------------------------------------------------------
# HashEmbeddingProvider
# ------------------------------------------------------------------


def test_string_hash_known_values():
    assert string_hash("") == 0
    assert string_hash("a") == 97
    assert string_hash("ab") == 97 * 31 + 98


def test_string_hash_wraps_to_signed_32_bit():
    value = string_hash("agricultural production statistics")
    assert -(2**31) <= value < 2**31


def test_hash_embedding_default_dimensions():
    assert len(HashEmbeddingProvider().embed("rice")) == 384


def test_hash_embedding_is_deterministic():
    provider = HashEmbeddingProvider(dimensions=8)
    assert provider.embed("wheat yield") == provider.embed("wheat yield")
    assert provider.embed("wheat yield") != provider.embed("maize yield")


def test_hash_embedding_formula():
    seed = string_hash("x")
    vector = HashEmbeddingProvider(dimensions=3).embed("x")
    assert vector == pytest.approx([math.sin(seed + i) * 0.1 for i in range(3)])


def test_hash_embed_batch_matches_embed():
    provider = HashEmbeddingProvider(dimensions=4)
    assert provider.embed_batch(["a", "b"]) == [provider.embed("a"), provider.embed("b")]


def test_hash_embedding_rejects_bad_dimensions():
    with pytest.raises(ValueError):
        HashEmbeddingProvider(dimensions=0)


# ------------------------------------------------------------------
# LiteLLMEmbeddingProvider
# ------------------------------------------------------------------


def test_litellm_single_batched_call():
    provider = LiteLLMEmbeddingProvider(model="openai/text-embedding-3-small", dimensions=2)
    with patch("agrirag.rag.llm_client.litellm.embedding") as mock_embed:
        mock_embed.return_value = _response([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]])
        vectors = provider.embed_batch(["a", "b", "c"])

    mock_embed.assert_called_once()
    kwargs = mock_embed.call_args.kwargs
    assert kwargs["input"] == ["a", "b", "c"]
    assert kwargs["timeout"] == 30.0
    assert kwargs["num_retries"] == 3
    assert vectors == [[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]]


def test_litellm_orders_by_response_index():
    provider = LiteLLMEmbeddingProvider(dimensions=1)
    resp = MagicMock()
    resp.data = [{"index": 1, "embedding": [2.0]}, {"index": 0, "embedding": [1.0]}]
    with patch("agrirag.rag.llm_client.litellm.embedding", return_value=resp):
        assert provider.embed_batch(["first", "second"]) == [[1.0], [2.0]]


def test_litellm_empty_batch_makes_no_call():
    provider = LiteLLMEmbeddingProvider(dimensions=2)
    with patch("agrirag.rag.llm_client.litellm.embedding") as mock_embed:
        assert provider.embed_batch([]) == []
    mock_embed.assert_not_called()


@pytest.mark.parametrize("vectors", [
    [[0.1, 0.2]],                # wrong count
    [[0.1], [0.2]],              # wrong dimensionality
    [[0.1, "x"], [0.2, 0.3]],    # non-numeric
    [[0.1, float("nan")], [0.2, 0.3]],
])
def test_litellm_malformed_output_is_not_transient(vectors):
    provider = LiteLLMEmbeddingProvider(dimensions=2)
    with patch("agrirag.rag.llm_client.litellm.embedding", return_value=_response(vectors)):
        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed_batch(["a", "b"])
    assert exc_info.value.transient is False


def test_litellm_network_failure_is_transient():
    provider = LiteLLMEmbeddingProvider(dimensions=2)
    with patch(
        "agrirag.rag.llm_client.litellm.embedding", side_effect=TimeoutError("timed out")
    ):
        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("rice")
    assert exc_info.value.transient is True


def test_litellm_other_failure_is_not_transient():
    provider = LiteLLMEmbeddingProvider(dimensions=2)
    with patch("agrirag.rag.llm_client.litellm.embedding", side_effect=ValueError("bad model")):
        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("rice")
    assert exc_info.value.transient is False


# ------------------------------------------------------------------
# build_embedding_provider
# ------------------------------------------------------------------


def test_build_auto_without_key_falls_back_to_hash(monkeypatch):
    monkeypatch.delenv("HUGGINGFACE_API_KEY", raising=False)
    provider = build_embedding_provider(EmbeddingCfg(dimensions=32))
    assert isinstance(provider, HashEmbeddingProvider)
    assert provider.dimensions == 32


def test_build_auto_with_key_uses_litellm(monkeypatch):
    monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf_test")
    provider = build_embedding_provider(EmbeddingCfg())
    assert isinstance(provider, LiteLLMEmbeddingProvider)
    assert provider.model == "huggingface/sentence-transformers/all-MiniLM-L6-v2"


def test_build_explicit_hash(monkeypatch):
    monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf_test")
    assert isinstance(build_embedding_provider(EmbeddingCfg(provider="hash")), HashEmbeddingProvider)


def test_build_explicit_litellm_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = build_embedding_provider(
        EmbeddingCfg(provider="litellm", model="openai/text-embedding-3-small", dimensions=1536)
    )
    assert isinstance(provider, LiteLLMEmbeddingProvider)
