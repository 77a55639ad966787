"""LiteLLM client wrapper with retry, timeout, and API key validation.

All LLM + embedding calls route through this module.
LiteLLM's built-in retry is used (num_retries, exponential backoff); every
call also carries a finite timeout. Failures that survive the retries are
mapped onto agrirag's error types by the callers via ``is_transient()``.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import litellm

from agrirag.db.models import DEFAULT_MODEL
from agrirag.errors import LanguageModelError, LanguageModelErrorKind

if TYPE_CHECKING:
    from agrirag.config import GenerationCfg

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    TimeoutError,
    ConnectionError,
)


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if absent)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider, "OPENAI_API_KEY")
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def has_api_key(model: str) -> bool:
    """True if the key *model*'s provider needs is set (or none is needed)."""
    try:
        validate_api_key(model)
    except EnvironmentError:
        return False
    return True


def is_transient(exc: BaseException) -> bool:
    """True for timeouts, connection failures, rate limits and 5xx responses."""
    return isinstance(exc, _TRANSIENT_ERRORS)


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 512,
    temperature: float = 0.3,
    num_retries: int = 3,
    timeout: float = 60.0,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Raises:
        litellm.exceptions.APIError (and subclasses): On persistent API failure
            after retries.
    """
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        timeout=timeout,
    )
    return response.choices[0].message.content or ""


def embed_batch(
    model: str,
    texts: list[str],
    num_retries: int = 3,
    timeout: float = 30.0,
) -> list[Any]:
    """Call litellm.embedding() once for all *texts*. Returns the raw vectors.

    Vectors are returned in input order (by the response ``index`` when the
    provider supplies one). Shape is not validated here.
    """
    response = litellm.embedding(
        model=model,
        input=texts,
        num_retries=num_retries,
        timeout=timeout,
    )
    items = list(response.data)
    if items and all(_field(item, "index") is not None for item in items):
        items.sort(key=lambda item: _field(item, "index"))
    return [_field(item, "embedding") for item in items]


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


# ------------------------------------------------------------------
# Language model providers
# ------------------------------------------------------------------


class TextGenerator(ABC):
    """Language-model collaborator used by the RAG orchestrator."""

    @abstractmethod
    def generate(
        self, prompt: str, model: str, max_tokens: int = 512, temperature: float = 0.3
    ) -> str:
        """Return the model's completion for *prompt*.

        Raises:
            LanguageModelError: When the model cannot produce a response.
        """


class LiteLLMGenerator(TextGenerator):
    """Generate through LiteLLM.

    Args:
        default_model: Model used when the caller asks for
            ``default-instruct-model``.
        timeout: Seconds per request.
        num_retries: Retries on transient errors before giving up.
    """

    def __init__(
        self,
        default_model: str = "huggingface/google/gemma-2b-it",
        timeout: float = 60.0,
        num_retries: int = 3,
    ) -> None:
        self.default_model = default_model
        self.timeout = timeout
        self.num_retries = num_retries

    def resolve_model(self, model: str | None) -> str:
        if not model or model == DEFAULT_MODEL:
            return self.default_model
        return model

    def generate(
        self, prompt: str, model: str, max_tokens: int = 512, temperature: float = 0.3
    ) -> str:
        resolved = self.resolve_model(model)
        try:
            validate_api_key(resolved)
            return complete(
                model=resolved,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
                num_retries=self.num_retries,
                timeout=self.timeout,
            )
        except Exception as exc:
            kind = (
                LanguageModelErrorKind.TRANSIENT
                if is_transient(exc)
                else LanguageModelErrorKind.UNAVAILABLE
            )
            raise LanguageModelError(
                f"Generation with '{resolved}' failed: {exc}", kind=kind
            ) from exc


class OfflineGenerator(TextGenerator):
    """Canned agricultural-assistant replies for development without an API key."""

    def generate(
        self, prompt: str, model: str, max_tokens: int = 512, temperature: float = 0.3
    ) -> str:
        lowered = prompt.lower()
        if "computation" in lowered or "calculate" in lowered:
            return (
                "I understand you're asking for computational analysis. Please provide "
                "your agricultural data and I'll help you calculate the statistics you need."
            )
        if "crop" in lowered or "farming" in lowered:
            return (
                "I'm here to help with agricultural questions. I can assist with crop "
                "information, farming practices, weather guidance, and data analysis. "
                "What specific agricultural topic would you like to know about?"
            )
        return (
            "I'm an agricultural AI assistant. I can help you with farming questions, "
            "crop data analysis, weather information, and agricultural best practices. "
            "How can I assist you today?"
        )


def build_generator(cfg: GenerationCfg) -> TextGenerator:
    """Pick the generator for *cfg.provider* ('auto' falls back offline without a key)."""
    if cfg.provider == "offline" or (cfg.provider == "auto" and not has_api_key(cfg.model)):
        return OfflineGenerator()
    return LiteLLMGenerator(
        default_model=cfg.model, timeout=cfg.timeout, num_retries=cfg.num_retries
    )
