"""Dataset indexing pipeline: chunks → one batched embedding call → store + index.

A dataset's status is the only completion signal. It flips to ``ready`` only
after every chunk is embedded, stored and indexed; on any failure the partial
work is rolled back, the status becomes ``error`` and the exception is
re-raised. Other datasets are unaffected.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from agrirag.db.models import (
    Dataset,
    DatasetStatus,
    DocumentChunk,
    FileType,
    TextChunk,
    metadata_from_dict,
)
from agrirag.db.repository import Repository
from agrirag.db.vectors import InMemoryVectorIndex, VectorIndex
from agrirag.errors import EmbeddingProviderError, InvalidStatusTransition
from agrirag.ingest.embeddings import EmbeddingProvider
from agrirag.ingest.loader import load_chunks

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of ingesting one file.

    Attributes:
        name: Display name of the file.
        dataset_id: Id of the dataset created for it (None if it was never
            registered, e.g. the path does not exist).
        status: Final dataset status.
        chunks_created: Number of chunks indexed (0 on failure).
        error: Failure message, or None on success.
    """

    name: str
    dataset_id: str | None
    status: DatasetStatus
    chunks_created: int = 0
    error: str | None = None


class IndexingPipeline:
    """Drive datasets from extracted chunks to a queryable state.

    Args:
        store: Dataset/chunk persistence.
        index: Vector index that serves similarity search.
        embedder: Embedding provider (one batched call per dataset).
        chunk_size: Free-text chunk size used by ``ingest_file``.
        overlap: Free-text overlap used by ``ingest_file``.
        max_workers: Upper bound on datasets indexed concurrently by ``submit``.
    """

    def __init__(
        self,
        store: Repository,
        index: VectorIndex,
        embedder: EmbeddingProvider,
        *,
        chunk_size: int = 1000,
        overlap: int = 200,
        max_workers: int = 3,
    ) -> None:
        self._store = store
        self._index = index
        self._embedder = embedder
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    # ------------------------------------------------------------------
    # Core operation
    # ------------------------------------------------------------------

    def index(self, dataset_id: str, chunks: list[TextChunk]) -> list[DocumentChunk]:
        """Embed and store *chunks* for *dataset_id*, then mark it ready.

        Only a ``processing`` dataset can be indexed. A failure rolls back the
        chunks this call stored and indexed; earlier chunks are untouched.

        Raises:
            KeyError: Unknown dataset.
            InvalidStatusTransition: The dataset is not ``processing``; nothing
                is embedded and its status is unchanged.
            EmbeddingProviderError: Embedding failed or returned the wrong
                number of vectors (dataset marked ``error``).
            Exception: Any storage/index failure (dataset marked ``error``).
        """
        dataset = self._store.get_dataset(dataset_id)
        if dataset is None:
            raise KeyError(dataset_id)
        if dataset.status is not DatasetStatus.PROCESSING:
            raise InvalidStatusTransition(
                dataset_id, dataset.status.value, DatasetStatus.PROCESSING.value
            )

        stored: list[DocumentChunk] = []
        inserted: list[str] = []
        try:
            vectors = self._embedder.embed_batch([c.content for c in chunks])
            if len(vectors) != len(chunks):
                raise EmbeddingProviderError(
                    f"expected {len(chunks)} embeddings, got {len(vectors)}", transient=False
                )

            records = [
                DocumentChunk(
                    dataset_id=dataset_id,
                    content=chunk.content,
                    embedding=list(vector),
                    metadata=metadata_from_dict(
                        {
                            **chunk.metadata.to_dict(),
                            "file_name": dataset.name,
                            "dataset_id": dataset_id,
                            "chunk_index": i,
                        }
                    ),
                )
                for i, (chunk, vector) in enumerate(zip(chunks, vectors))
            ]
            stored = self._store.add_chunks(records)
            for record in stored:
                self._index.insert(record, record.embedding or [])
                inserted.append(record.id)
            self._store.update_dataset_status(dataset_id, DatasetStatus.READY)
        except Exception:
            logger.exception("Indexing failed for dataset %s (%s)", dataset_id, dataset.name)
            self._rollback(dataset_id, stored, inserted)
            raise

        logger.info("Indexed %d chunks for dataset %s", len(stored), dataset.name)
        return stored

    def _rollback(self, dataset_id: str, stored: list[DocumentChunk], inserted: list[str]) -> None:
        self._index.remove(inserted)
        self._store.delete_chunks([c.id for c in stored])
        self._store.update_dataset_status(dataset_id, DatasetStatus.ERROR)

    # ------------------------------------------------------------------
    # File-level helpers
    # ------------------------------------------------------------------

    def register(self, path: str | Path, name: str | None = None) -> Dataset:
        """Create a ``processing`` dataset record for the file at *path*.

        The stored location is absolute, so later queries do not depend on the
        working directory.

        Raises:
            UnsupportedInputType: The extension is outside the upload
                allow-list; nothing is recorded.
        """
        path = Path(path)
        file_type = FileType.from_path(path)
        dataset = Dataset(
            name=name or path.name,
            file_type=file_type,
            source_location=str(path.resolve()),
            description=f"Uploaded {path.suffix.lstrip('.').upper()} file",
        )
        return self._store.create_dataset(dataset)

    def ingest_file(self, path: str | Path, name: str | None = None) -> list[DocumentChunk]:
        """Register, chunk and index one file.

        Raises:
            UnsupportedInputType, ExtractionError, EmbeddingProviderError:
                Any dataset already registered is left in ``error``.
        """
        return self._chunk_and_index(self.register(path, name=name))

    def _chunk_and_index(self, dataset: Dataset) -> list[DocumentChunk]:
        try:
            chunks = load_chunks(
                dataset.source_location,
                dataset.file_type,
                chunk_size=self._chunk_size,
                overlap=self._overlap,
            )
        except Exception:
            logger.exception("Chunking failed for %s", dataset.source_location)
            self._store.update_dataset_status(dataset.id, DatasetStatus.ERROR)
            raise
        return self.index(dataset.id, chunks)

    def ingest_many(self, paths: list[str | Path]) -> list[IngestResult]:
        """Ingest each file independently; one failure never stops the rest."""
        results: list[IngestResult] = []
        for path in paths:
            name = Path(path).name
            dataset: Dataset | None = None
            try:
                dataset = self.register(path)
                stored = self._chunk_and_index(dataset)
            except Exception as exc:
                results.append(
                    IngestResult(
                        name=name,
                        dataset_id=dataset.id if dataset else None,
                        status=DatasetStatus.ERROR,
                        error=str(exc),
                    )
                )
                continue
            results.append(
                IngestResult(
                    name=name,
                    dataset_id=dataset.id,
                    status=DatasetStatus.READY,
                    chunks_created=len(stored),
                )
            )
        return results

    # ------------------------------------------------------------------
    # Background indexing
    # ------------------------------------------------------------------

    def submit(self, dataset_id: str, chunks: list[TextChunk]) -> Future[list[DocumentChunk]]:
        """Index in a worker thread. The dataset stays ``processing`` until done."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="agrirag-index"
            )
        return self._executor.submit(self.index, dataset_id, chunks)

    def close(self) -> None:
        """Wait for running indexing jobs, then release the worker threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> IndexingPipeline:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def rebuild_index(store: Repository, dimensions: int | None = None) -> InMemoryVectorIndex:
    """Load every embedded chunk of a ``ready`` dataset into a fresh index."""
    ready = {d.id for d in store.list_datasets() if d.status is DatasetStatus.READY}
    return InMemoryVectorIndex.from_chunks(
        (c for c in store.list_chunks() if c.dataset_id in ready), dimensions=dimensions
    )
