"""agrirag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (AGRIRAG_GENERATION_MODEL, AGRIRAG_EMBEDDING_MODEL,
     AGRIRAG_LOG_LEVEL)
  3. Per-project agrirag.yaml  (current directory)
  4. Global ~/.agrirag/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from agrirag.errors import AgriragError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".agrirag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "agrirag.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Leaves max_tokens and top_k alone.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "retrieval", "chunkers", "vocabulary", "logging"]
)

_PROVIDERS: frozenset[str] = frozenset(["auto", "litellm", "hash", "offline"])
_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(AgriragError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (agrirag.yaml: embedding:).

    Attributes:
        provider: 'litellm' (remote), 'hash' (offline fallback) or 'auto'
            (remote when an API key for the model's provider is set).
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Fixed vector length shared by the remote model and the
            offline fallback.
        timeout: Seconds before a single embedding request is abandoned.
        num_retries: Retries on transient errors (LiteLLM backoff).
    """

    provider: str = "auto"
    model: str = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
    dimensions: int = 384
    timeout: float = 30.0
    num_retries: int = 3


@dataclass
class GenerationCfg:
    """LLM generation configuration (agrirag.yaml: generation:)."""

    provider: str = "auto"  # auto | litellm | offline
    model: str = "huggingface/google/gemma-2b-it"
    max_tokens: int = 512
    temperature: float = 0.3
    timeout: float = 60.0
    num_retries: int = 3


@dataclass
class RetrievalCfg:
    """Retrieval configuration (agrirag.yaml: retrieval:)."""

    top_k: int = 5


@dataclass
class ChunkerCfg:
    """Free-text chunk size and overlap, both in characters."""

    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class VocabularyCfg:
    """Location of the computation vocabulary table (None → packaged default)."""

    path: str | None = None


@dataclass
class LoggingCfg:
    level: str = "WARNING"


@dataclass
class AgriragConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunkers: ChunkerCfg = field(default_factory=ChunkerCfg)
    vocabulary: VocabularyCfg = field(default_factory=VocabularyCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: AgriragConfig) -> None:
    if cfg.embedding.provider not in _PROVIDERS - {"offline"}:
        raise ConfigError(
            f"embedding.provider must be one of auto, litellm, hash — got '{cfg.embedding.provider}'"
        )
    if cfg.generation.provider not in _PROVIDERS - {"hash"}:
        raise ConfigError(
            f"generation.provider must be one of auto, litellm, offline — got '{cfg.generation.provider}'"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.embedding.timeout <= 0 or cfg.generation.timeout <= 0:
        raise ConfigError("timeouts must be positive (seconds)")
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.chunkers.chunk_size < 1:
        raise ConfigError(f"chunkers.chunk_size must be >= 1, got {cfg.chunkers.chunk_size}")
    if not 0 <= cfg.chunkers.overlap < cfg.chunkers.chunk_size:
        raise ConfigError(
            f"chunkers.overlap must be in [0, chunk_size), got {cfg.chunkers.overlap}"
        )
    if cfg.logging.level not in _LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {sorted(_LOG_LEVELS)}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    """Parse one config layer; an empty file is an empty mapping."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return the *name* section of *data*; a null section is empty."""
    section = data[name] or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {section!r}")
    return section


def _cfg_from_dict(data: dict[str, Any]) -> AgriragConfig:
    """Build an *AgriragConfig* from a merged raw YAML dict."""
    cfg = AgriragConfig()

    try:
        if "embedding" in data:
            e = _section(data, "embedding")
            cfg.embedding = EmbeddingCfg(
                provider=str(e.get("provider", cfg.embedding.provider)),
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                timeout=float(e.get("timeout", cfg.embedding.timeout)),
                num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            )

        if "generation" in data:
            g = _section(data, "generation")
            cfg.generation = GenerationCfg(
                provider=str(g.get("provider", cfg.generation.provider)),
                model=str(g.get("model", cfg.generation.model)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
                temperature=float(g.get("temperature", cfg.generation.temperature)),
                timeout=float(g.get("timeout", cfg.generation.timeout)),
                num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
            )

        if "retrieval" in data:
            r = _section(data, "retrieval")
            cfg.retrieval = RetrievalCfg(top_k=int(r.get("top_k", cfg.retrieval.top_k)))

        if "chunkers" in data:
            ch = _section(data, "chunkers")
            cfg.chunkers = ChunkerCfg(
                chunk_size=int(ch.get("chunk_size", cfg.chunkers.chunk_size)),
                overlap=int(ch.get("overlap", cfg.chunkers.overlap)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric value in config: {exc}") from exc

    if "vocabulary" in data:
        v = _section(data, "vocabulary")
        cfg.vocabulary = VocabularyCfg(path=v.get("path") or cfg.vocabulary.path)

    if "logging" in data:
        lg = _section(data, "logging")
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)).upper())

    return cfg


def _apply_env_overrides(cfg: AgriragConfig) -> AgriragConfig:
    """Apply AGRIRAG_* environment variable overrides."""
    if model := os.environ.get("AGRIRAG_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("AGRIRAG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if level := os.environ.get("AGRIRAG_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> AgriragConfig:
    """Load and return a merged *AgriragConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *agrirag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or if any
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg
