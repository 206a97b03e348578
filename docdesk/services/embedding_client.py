"""HTTP client for an OpenAI-compatible embedding service.

The service is an opaque request/response boundary: ``POST /embeddings``
with ``{"model": ..., "input": [...]}`` returns ``{"data": [{"index": i,
"embedding": [...]}, ...]}``.

Failures are never retried inline.  :meth:`EmbeddingClient.embed` raises
:class:`EmbeddingServiceError`; :meth:`EmbeddingClient.embed_batch`
isolates failures per text and returns an empty vector for each text that
could not be embedded, so a later full reprocess can pick it up.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from docdesk.config import (
    EMBEDDING_API_KEY,
    EMBEDDING_BASE_URL,
    EMBEDDING_BATCH_DELAY_SECONDS,
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_MODEL,
)
from docdesk.exceptions import EmbeddingServiceError
from docdesk.services.metrics import metrics
from docdesk.services.vector_cache import VectorCache

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30.0


class EmbeddingClient:
    """Thin wrapper around the embedding endpoint with batching and
    inter-batch throttling.

    Query embeddings go through a small :class:`VectorCache`; chunk
    embeddings do not.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        *,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        batch_delay: float = EMBEDDING_BATCH_DELAY_SECONDS,
        cache: VectorCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._model = model or EMBEDDING_MODEL
        self._client = httpx.Client(
            base_url=base_url or EMBEDDING_BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key or EMBEDDING_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._cache = cache or VectorCache()
        self._sleep = sleep

    # ── Internal helpers ─────────────────────────────────────────────

    def _request(self, texts: list[str]) -> list[list[float]]:
        """Execute one embeddings request.  Raises on any failure."""
        try:
            response = self._client.post(
                "/embeddings",
                json={"model": self._model, "input": texts},
            )
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(
                f"Embedding request failed: {type(exc).__name__}: {exc}"
            ) from exc

        if response.status_code >= 400:
            raise EmbeddingServiceError(
                f"Embedding service error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            payload: dict[str, Any] = response.json()
            data = sorted(payload["data"], key=lambda item: item.get("index", 0))
            vectors = [list(map(float, item["embedding"])) for item in data]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingServiceError(f"Malformed embedding response: {exc}") from exc

        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                f"Embedding service returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        return vectors

    # ── Public API ───────────────────────────────────────────────────

    def embed(self, text: str) -> list[float]:
        """Embed a single text (typically a query).

        Raises:
            EmbeddingServiceError: when the service call fails.
        """
        cached = self._cache.get(text)
        if cached is not None:
            return cached

        with metrics.track("embedding", "embed"):
            vector = self._request([text])[0]
        self._cache.put(text, vector)
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in fixed-size batches, throttled between batches.

        Each text is requested on its own so that one failure cannot take
        its siblings down; failed texts come back as ``[]``.
        """
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            if start:
                self._sleep(self._batch_delay)
            for text in texts[start : start + self._batch_size]:
                try:
                    with metrics.track("embedding", "embed_batch"):
                        vectors.append(self._request([text])[0])
                except EmbeddingServiceError as exc:
                    logger.warning("Embedding failed for one chunk, leaving it empty: %s", exc)
                    vectors.append([])
        return vectors

    def close(self) -> None:
        self._client.close()
