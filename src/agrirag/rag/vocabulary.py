"""Closed vocabulary for computational queries (categories, regions, cues).

The table lives in YAML so entries can be extended or swapped without
touching the classifier or the aggregation code. The packaged default is
``agrirag/data/vocabulary.yaml``; ``vocabulary.path`` in agrirag.yaml points
at a replacement file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from agrirag.config import ConfigError

DEFAULT_VOCABULARY_PATH: Path = Path(__file__).resolve().parent.parent / "data" / "vocabulary.yaml"

_SECTIONS = ("categories", "regions", "cues")


@dataclass(frozen=True)
class Vocabulary:
    """Lower-cased term lists, kept in file order (first match wins)."""

    categories: tuple[str, ...]
    regions: tuple[str, ...]
    cues: tuple[str, ...]

    @classmethod
    def load(cls, path: str | Path | None = None) -> Vocabulary:
        """Read the vocabulary table from *path* (packaged default when None).

        Raises:
            ConfigError: The file is missing, is not a mapping, or a section
                is not a list of strings.
        """
        source = Path(path) if path is not None else DEFAULT_VOCABULARY_PATH
        try:
            raw = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        except OSError as exc:
            raise ConfigError(f"Cannot read vocabulary file '{source}': {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Vocabulary file '{source}' is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Vocabulary file '{source}' must be a mapping")

        sections: dict[str, tuple[str, ...]] = {}
        for name in _SECTIONS:
            terms = raw.get(name) or []
            if not isinstance(terms, list) or not all(isinstance(t, str) for t in terms):
                raise ConfigError(f"'{name}' in '{source}' must be a list of strings")
            sections[name] = tuple(t.strip().lower() for t in terms if t.strip())
        return cls(**sections)

    def find_category(self, text: str) -> str | None:
        return _first_match(self.categories, text)

    def find_region(self, text: str) -> str | None:
        return _first_match(self.regions, text)


def _first_match(terms: tuple[str, ...], text: str) -> str | None:
    lowered = text.lower()
    return next((term for term in terms if term in lowered), None)
