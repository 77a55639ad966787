"""Embedding providers: LiteLLM remote models and an offline hash fallback.

Both providers share one contract: every vector has exactly ``dimensions``
floats, so the fallback is a drop-in substitute in tests and offline
development. The fallback carries no semantic meaning.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from numbers import Real
from typing import TYPE_CHECKING, Any

from agrirag.errors import EmbeddingProviderError
from agrirag.rag import llm_client

if TYPE_CHECKING:
    from agrirag.config import EmbeddingCfg

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Maps text to fixed-length float vectors."""

    dimensions: int

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed all *texts* in one request, preserving order.

        Raises:
            EmbeddingProviderError: ``transient=True`` for retryable
                network/service failures, ``transient=False`` for malformed
                provider output.
        """


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Remote embeddings through ``litellm.embedding``.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Expected vector length; other lengths are rejected.
        timeout: Seconds per request.
        num_retries: LiteLLM retries on transient errors.
    """

    def __init__(
        self,
        model: str = "huggingface/sentence-transformers/all-MiniLM-L6-v2",
        dimensions: int = 384,
        timeout: float = 30.0,
        num_retries: int = 3,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout
        self.num_retries = num_retries

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            raw = llm_client.embed_batch(
                self.model, texts, num_retries=self.num_retries, timeout=self.timeout
            )
        except Exception as exc:
            transient = llm_client.is_transient(exc)
            raise EmbeddingProviderError(
                f"Embedding request to '{self.model}' failed: {exc}", transient=transient
            ) from exc
        return self._validate(raw, expected=len(texts))

    def _validate(self, raw: list[Any], expected: int) -> list[list[float]]:
        if len(raw) != expected:
            raise EmbeddingProviderError(
                f"'{self.model}' returned {len(raw)} vectors for {expected} inputs",
                transient=False,
            )
        vectors: list[list[float]] = []
        for i, vector in enumerate(raw):
            if not isinstance(vector, (list, tuple)) or len(vector) != self.dimensions:
                size = len(vector) if isinstance(vector, (list, tuple)) else type(vector).__name__
                raise EmbeddingProviderError(
                    f"'{self.model}' vector {i} has shape {size}, expected {self.dimensions}",
                    transient=False,
                )
            if not all(isinstance(x, Real) and math.isfinite(x) for x in vector):
                raise EmbeddingProviderError(
                    f"'{self.model}' vector {i} contains non-numeric values", transient=False
                )
            vectors.append([float(x) for x in vector])
        return vectors


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic pseudo-embeddings seeded from a 32-bit string hash.

    ``vector[i] = sin(hash(text) + i) * 0.1``. Identical text always maps to
    the identical vector; nothing else about the geometry is meaningful.
    """

    def __init__(self, dimensions: int = 384) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.dimensions = dimensions

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        seed = string_hash(text)
        return [math.sin(seed + i) * 0.1 for i in range(self.dimensions)]


def string_hash(text: str) -> int:
    """Signed 32-bit ``h = h * 31 + code`` hash over the text's code points."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def build_embedding_provider(cfg: EmbeddingCfg) -> EmbeddingProvider:
    """Pick the provider for *cfg.provider*.

    'auto' uses the remote model when its provider's API key is set and the
    hash fallback otherwise.
    """
    if cfg.provider == "hash" or (
        cfg.provider == "auto" and not llm_client.has_api_key(cfg.model)
    ):
        if cfg.provider == "auto":
            logger.warning(
                "No API key for embedding model '%s'; using offline hash embeddings",
                cfg.model,
            )
        return HashEmbeddingProvider(dimensions=cfg.dimensions)
    return LiteLLMEmbeddingProvider(
        model=cfg.model,
        dimensions=cfg.dimensions,
        timeout=cfg.timeout,
        num_retries=cfg.num_retries,
    )
