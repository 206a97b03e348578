"""Document ingestion, deletion and embedding status.

Ingestion is the fast path: chunk, store, reindex, and hand the document
to the background scheduler.  The caller never waits for embeddings.
"""

from __future__ import annotations

import logging
from pathlib import PurePath

from pydantic import BaseModel

from docdesk.config import MAX_UPLOAD_BYTES
from docdesk.exceptions import DocumentNotFoundError, UnsupportedFileError
from docdesk.models import Document, EmbeddingStatus, FileKind
from docdesk.retrieval.chunker import build_chunks
from docdesk.retrieval.index import DocumentIndex
from docdesk.retrieval.scheduler import EmbeddingScheduler
from docdesk.services.extraction import extract_text
from docdesk.services.repository import Repository

logger = logging.getLogger(__name__)


class DocumentSummary(BaseModel):
    id: str
    filename: str
    kind: FileKind
    chunk_count: int
    embedded_chunk_count: int
    embedding_status: EmbeddingStatus
    created_at: str


def file_kind_for(filename: str) -> FileKind:
    """Map an upload's extension to a :class:`FileKind` or reject it."""
    suffix = PurePath(filename or "").suffix.lower().lstrip(".")
    try:
        return FileKind(suffix)
    except ValueError:
        raise UnsupportedFileError(
            "Unsupported file type. Please upload PDF, DOCX, or TXT files."
        ) from None


class DocumentService:
    def __init__(
        self,
        repository: Repository,
        index: DocumentIndex,
        scheduler: EmbeddingScheduler,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self._repository = repository
        self._index = index
        self._scheduler = scheduler
        self._max_upload_bytes = max_upload_bytes

    def ingest_upload(self, raw: bytes, filename: str) -> Document:
        """Validate an uploaded file, extract its text and ingest it."""
        kind = file_kind_for(filename)
        if len(raw) > self._max_upload_bytes:
            raise UnsupportedFileError(
                f"File '{filename}' is too large. "
                f"Max size is {self._max_upload_bytes // (1024 * 1024)} MB.",
                too_large=True,
            )
        text = extract_text(raw, kind, filename)
        return self.ingest_document(text, filename, kind)

    def ingest_document(self, text: str, filename: str, kind: FileKind) -> Document:
        """Chunk and store *text* without embeddings, then queue embedding."""
        document = Document(filename=filename, text=text, kind=kind, chunks=build_chunks(text))
        self._repository.save_document(document)
        self._index.reload()
        self._scheduler.enqueue(document.id)
        logger.info("Ingested %s as %s (%d chunks)", filename, document.id, len(document.chunks))
        return document

    def enqueue_embedding(self, document_id: str) -> bool:
        if self._repository.get_document(document_id) is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return self._scheduler.enqueue(document_id)

    def delete_document(self, document_id: str) -> None:
        self._repository.delete_document(document_id)
        self._index.reload()
        logger.info("Deleted document %s", document_id)

    def resume_pending(self) -> int:
        """Queue background embedding for every indexed document that still
        has un-embedded chunks.  Returns the number of jobs queued."""
        queued = 0
        for doc in self._index.snapshot():
            if doc.embedded_chunk_count < len(doc.chunks) and self._scheduler.enqueue(doc.id):
                queued += 1
        return queued

    def reprocess(self) -> int:
        """Full reprocess: embed every chunk still missing a vector."""
        return self._index.reload(embed_missing=True)

    def embedding_status(self, document_id: str) -> EmbeddingStatus:
        return self._scheduler.status(document_id)

    def list_documents(self) -> list[DocumentSummary]:
        return [
            DocumentSummary(
                id=doc.id,
                filename=doc.filename,
                kind=doc.kind,
                chunk_count=len(doc.chunks),
                embedded_chunk_count=doc.embedded_chunk_count,
                embedding_status=self._scheduler.status(doc.id),
                created_at=doc.created_at.isoformat(),
            )
            for doc in self._repository.list_documents()
        ]
