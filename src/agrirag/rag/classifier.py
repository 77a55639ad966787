"""Keyword router: computational vs conversational queries.

Precision over recall. A false positive lands in the computation engine,
which answers with a clarification instead of failing.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class QueryKind(str, Enum):
    COMPUTATIONAL = "computational"
    CONVERSATIONAL = "conversational"


class QueryClassifier:
    """Computational iff the lower-cased query contains any aggregation cue."""

    def __init__(self, cues: Iterable[str]) -> None:
        self.cues = tuple(c.lower() for c in cues if c)

    def classify(self, query: str) -> QueryKind:
        lowered = query.lower()
        if any(cue in lowered for cue in self.cues):
            return QueryKind.COMPUTATIONAL
        return QueryKind.CONVERSATIONAL

    def is_computational(self, query: str) -> bool:
        return self.classify(query) is QueryKind.COMPUTATIONAL
