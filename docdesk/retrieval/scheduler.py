"""Background embedding scheduler.

Uploads are indexed immediately with keyword-only chunks; this scheduler
then promotes each document to semantic search without blocking the
caller.  One job runs per document on a small worker pool; the chunks of
a single document are embedded sequentially in throttled batches by the
:class:`~docdesk.services.embedding_client.EmbeddingClient`.

Status lifecycle per document id::

    queued → processing → completed | error

Finished entries are purged lazily once they are older than the
retention window.  An id with no entry reports ``completed``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from docdesk.config import EMBEDDING_RETENTION_SECONDS, EMBEDDING_WORKERS
from docdesk.exceptions import DocumentNotFoundError, EmbeddingServiceError
from docdesk.models import EmbeddingStatus
from docdesk.retrieval.index import DocumentIndex
from docdesk.services.embedding_client import EmbeddingClient
from docdesk.services.repository import Repository

logger = logging.getLogger(__name__)

_ACTIVE = (EmbeddingStatus.QUEUED, EmbeddingStatus.PROCESSING)


@dataclass
class QueueEntry:
    status: EmbeddingStatus
    finished_at: float | None = None
    error: str | None = None


class EmbeddingScheduler:
    def __init__(
        self,
        index: DocumentIndex,
        repository: Repository,
        embedder: EmbeddingClient,
        *,
        executor: Executor | None = None,
        retention_seconds: float = EMBEDDING_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._index = index
        self._repository = repository
        self._embedder = embedder
        self._executor = executor or ThreadPoolExecutor(
            max_workers=EMBEDDING_WORKERS, thread_name_prefix="embedding",
        )
        self._retention = retention_seconds
        self._clock = clock
        self._entries: dict[str, QueueEntry] = {}
        self._lock = threading.Lock()

    # ── Public API ───────────────────────────────────────────────────

    def enqueue(self, document_id: str) -> bool:
        """Schedule embedding for *document_id*.

        Returns ``False`` (and schedules nothing) if the document is
        already queued or processing.
        """
        with self._lock:
            self._purge()
            entry = self._entries.get(document_id)
            if entry is not None and entry.status in _ACTIVE:
                logger.debug("Embedding already pending for %s", document_id)
                return False
            self._entries[document_id] = QueueEntry(EmbeddingStatus.QUEUED)

        try:
            self._executor.submit(self._run, document_id)
        except RuntimeError as exc:
            logger.error("Could not schedule embedding for %s: %s", document_id, exc)
            self._finish(document_id, EmbeddingStatus.ERROR, str(exc))
            return False
        logger.info("Queued background embedding for %s", document_id)
        return True

    def status(self, document_id: str) -> EmbeddingStatus:
        with self._lock:
            self._purge()
            entry = self._entries.get(document_id)
        return entry.status if entry else EmbeddingStatus.COMPLETED

    def entry(self, document_id: str) -> QueueEntry | None:
        with self._lock:
            self._purge()
            return self._entries.get(document_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ── Worker ───────────────────────────────────────────────────────

    def _run(self, document_id: str) -> None:
        with self._lock:
            self._entries[document_id] = QueueEntry(EmbeddingStatus.PROCESSING)
        try:
            embedded = self._embed_document(document_id)
        except Exception as exc:
            logger.exception("Background embedding failed for %s", document_id)
            self._finish(document_id, EmbeddingStatus.ERROR, str(exc))
            return
        logger.info("Background embedding completed for %s (%d chunks)", document_id, embedded)
        self._finish(document_id, EmbeddingStatus.COMPLETED)

    def _embed_document(self, document_id: str) -> int:
        doc = self._index.get(document_id) or self._repository.get_document(document_id)
        if doc is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        missing = [i for i, chunk in enumerate(doc.chunks) if not chunk.is_embedded]
        if not missing:
            return 0

        vectors = self._embedder.embed_batch([doc.chunks[i].text for i in missing])
        computed = {i: v for i, v in zip(missing, vectors) if v}
        if not computed:
            raise EmbeddingServiceError(
                f"None of the {len(missing)} chunks of {doc.filename} could be embedded"
            )

        self._repository.update_chunk_embeddings(document_id, computed)
        self._index.apply_embeddings(document_id, computed)
        return len(computed)

    # ── Internal ─────────────────────────────────────────────────────

    def _finish(self, document_id: str, status: EmbeddingStatus, error: str | None = None) -> None:
        with self._lock:
            self._entries[document_id] = QueueEntry(status, finished_at=self._clock(), error=error)

    def _purge(self) -> None:
        """Drop finished entries past the retention window.  Caller holds the lock."""
        now = self._clock()
        expired = [
            doc_id
            for doc_id, entry in self._entries.items()
            if entry.finished_at is not None and now - entry.finished_at >= self._retention
        ]
        for doc_id in expired:
            del self._entries[doc_id]
