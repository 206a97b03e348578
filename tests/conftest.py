"""Shared test fixtures for the DocDesk test suite."""

from __future__ import annotations

import os
from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("EMBEDDING_API_KEY", "test-embedding-key-456")
    os.environ.setdefault("METRICS_ENABLED", "false")


class InlineExecutor(Executor):
    """Runs submitted jobs synchronously so scheduler tests are deterministic."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Collects jobs and runs them only when ``run_all`` is called."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        self.jobs.append((fn, args, kwargs))
        return Future()

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for fn, args, kwargs in jobs:
            fn(*args, **kwargs)


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()


@pytest.fixture
def repository():
    from docdesk.services.repository import InMemoryRepository

    return InMemoryRepository()


@pytest.fixture
def fake_embedder():
    """Embedding client double: every text embeds to ``[1.0, 0.0]``."""
    embedder = MagicMock()
    embedder.embed.return_value = [1.0, 0.0]
    embedder.embed_batch.side_effect = lambda texts: [[1.0, 0.0] for _ in texts]
    return embedder


@pytest.fixture
def make_document():
    """Factory for documents with explicit chunk texts and optional vectors."""
    from docdesk.models import Chunk, ChunkMetadata, Document, FileKind

    def _make(filename: str, chunks: list[str], embeddings: list[list[float]] | None = None):
        embeddings = embeddings or [[] for _ in chunks]
        return Document(
            filename=filename,
            text="\n\n".join(chunks),
            kind=FileKind.TXT,
            chunks=[
                Chunk(text=text, embedding=vector, metadata=ChunkMetadata(index=i, page=1))
                for i, (text, vector) in enumerate(zip(chunks, embeddings))
            ],
        )

    return _make
