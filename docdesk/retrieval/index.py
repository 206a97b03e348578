"""In-memory document index rebuilt wholesale from the durable store.

The index maps document id → :class:`~docdesk.models.Document`.  The map
is never patched in place: every reload or embedding update builds a new
dict and swaps the reference, so readers holding a snapshot always see a
consistent view even while a background write is in flight.  All writers
go through one lock, which also serializes reloads.
"""

from __future__ import annotations

import logging
import threading

from docdesk.models import Document
from docdesk.services.embedding_client import EmbeddingClient
from docdesk.services.repository import Repository

logger = logging.getLogger(__name__)


class DocumentIndex:
    def __init__(self, repository: Repository, embedder: EmbeddingClient | None = None) -> None:
        self._repository = repository
        self._embedder = embedder
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()

    def reload(self, *, embed_missing: bool = False) -> int:
        """Re-read every document from the durable store.

        With ``embed_missing=True`` every chunk without a vector is sent to
        the embedding service first and the computed vectors are written
        back to the store.  Chunks that still fail stay empty.

        Returns the number of documents indexed.
        """
        with self._lock:
            documents = self._repository.list_documents()
            if embed_missing and self._embedder is not None:
                for doc in documents:
                    self._backfill(doc)
            self._documents = {doc.id: doc for doc in documents}
        logger.info("Document index reloaded: %d documents", len(documents))
        return len(documents)

    def _backfill(self, doc: Document) -> None:
        missing = [i for i, chunk in enumerate(doc.chunks) if not chunk.is_embedded]
        if not missing:
            return
        vectors = self._embedder.embed_batch([doc.chunks[i].text for i in missing])
        computed = {i: v for i, v in zip(missing, vectors) if v}
        for i, vector in computed.items():
            doc.chunks[i].embedding = vector
        if computed:
            self._repository.update_chunk_embeddings(doc.id, computed)
        logger.info(
            "Backfilled %d/%d missing embeddings for %s",
            len(computed), len(missing), doc.filename,
        )

    def apply_embeddings(self, document_id: str, vectors: dict[int, list[float]]) -> bool:
        """Copy-on-write update of one document's chunk vectors.

        Returns ``False`` if the document is no longer indexed (deleted
        while its embeddings were being computed).
        """
        with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                return False
            updated = current.model_copy(deep=True)
            for i, vector in vectors.items():
                if 0 <= i < len(updated.chunks):
                    updated.chunks[i].embedding = list(vector)
            documents = dict(self._documents)
            documents[document_id] = updated
            self._documents = documents
        return True

    def snapshot(self) -> list[Document]:
        """Return the currently indexed documents (a stable view)."""
        return list(self._documents.values())

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def has_embeddings(self) -> bool:
        return any(doc.embedded_chunk_count for doc in self.snapshot())

    def __len__(self) -> int:
        return len(self._documents)
