"""Exception hierarchy shared by the ingest, index and RAG layers.

Only genuinely exceptional conditions live here. Outcomes the user is expected
to see (no retrievable context, unknown crop, no matching rows) are returned as
values by the components that produce them.
"""

from __future__ import annotations

from enum import Enum


class AgriragError(Exception):
    """Base class for all agrirag errors."""


class UnsupportedInputType(AgriragError, ValueError):
    """Raised before chunking when a file type cannot be processed."""

    def __init__(self, file_type: str) -> None:
        super().__init__(f"Unsupported file type: {file_type!r}")
        self.file_type = file_type


class ExtractionError(AgriragError):
    """Raised when a parser cannot open or read the source stream at all."""


class PartialExtractionFailure(AgriragError):
    """A single unit (row, page) could not be extracted.

    Chunkers record these and continue; they are never raised to callers.
    """

    def __init__(self, unit: str, reason: str) -> None:
        super().__init__(f"{unit}: {reason}")
        self.unit = unit
        self.reason = reason


class EmbeddingProviderError(AgriragError):
    """Embedding call failed.

    ``transient=True`` means a network/service failure the caller may retry;
    ``transient=False`` means the provider answered with malformed output.
    """

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class LanguageModelErrorKind(str, Enum):
    TRANSIENT = "transient"
    UNAVAILABLE = "unavailable"


class LanguageModelError(AgriragError):
    """Generation call failed after retries."""

    def __init__(self, message: str, *, kind: LanguageModelErrorKind) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind is LanguageModelErrorKind.TRANSIENT


class InvalidStatusTransition(AgriragError):
    """A dataset status change would move backwards or sideways."""

    def __init__(self, dataset_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Dataset {dataset_id}: cannot change status from '{current}' to '{requested}'"
        )
        self.dataset_id = dataset_id
        self.current = current
        self.requested = requested
