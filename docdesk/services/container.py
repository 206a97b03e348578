"""Construction of the long-lived service graph.

The FastAPI lifespan and the CLI both call :func:`build_services` once and
pass the result around explicitly; nothing here is a module-level global.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass

from docdesk.config import MONGODB_DATABASE, MONGODB_URL
from docdesk.dialogue.machine import ConversationStateMachine
from docdesk.retrieval.index import DocumentIndex
from docdesk.retrieval.retriever import HybridRetriever
from docdesk.retrieval.scheduler import EmbeddingScheduler
from docdesk.services.answer import AnswerComposer
from docdesk.services.appointments import AppointmentService
from docdesk.services.documents import DocumentService
from docdesk.services.embedding_client import EmbeddingClient
from docdesk.services.repository import InMemoryRepository, Repository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: Repository
    embedder: EmbeddingClient
    index: DocumentIndex
    scheduler: EmbeddingScheduler
    retriever: HybridRetriever
    documents: DocumentService
    appointments: AppointmentService
    conversations: ConversationStateMachine

    def close(self) -> None:
        self.scheduler.shutdown(wait=False)
        self.embedder.close()


def _build_repository() -> Repository:
    if MONGODB_URL:
        from docdesk.services.mongo_repository import MongoRepository

        return MongoRepository.from_url(MONGODB_URL, MONGODB_DATABASE)
    logger.warning("MONGODB_URL not set; using the in-memory store (data is lost on restart)")
    return InMemoryRepository()


def build_services(
    *,
    repository: Repository | None = None,
    embedder: EmbeddingClient | None = None,
    composer: AnswerComposer | None = None,
    executor: Executor | None = None,
) -> Services:
    """Wire every component.  Keyword arguments override the defaults (tests)."""
    repository = repository or _build_repository()
    embedder = embedder or EmbeddingClient()
    index = DocumentIndex(repository, embedder)
    scheduler = EmbeddingScheduler(index, repository, embedder, executor=executor)
    retriever = HybridRetriever(index, embedder)
    return Services(
        repository=repository,
        embedder=embedder,
        index=index,
        scheduler=scheduler,
        retriever=retriever,
        documents=DocumentService(repository, index, scheduler),
        appointments=AppointmentService(repository),
        conversations=ConversationStateMachine(
            repository, retriever, composer or AnswerComposer(),
        ),
    )
