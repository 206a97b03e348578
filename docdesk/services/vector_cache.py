"""Thread-safe LRU cache for query embeddings, bounded by vector bytes.

Users tend to repeat or rephrase the same handful of questions, so the
embedding client keeps the most recent query vectors in memory instead of
calling the embedding service again.  Chunk embeddings are never cached:
they are persisted with their document.

Keys are SHA-256 digests of the normalised query text so that long queries
do not inflate memory use.  Size is accounted as 8 bytes per float.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 8 * 1024 * 1024
_BYTES_PER_FLOAT = 8


def _key(text: str) -> str:
    normalised = " ".join(text.lower().split())
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()


class VectorCache:
    """Least-recently-used map from query text to embedding vector."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self._max_bytes = max_bytes
        self._current_bytes = 0
        self._store: OrderedDict[str, list[float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, text: str) -> list[float] | None:
        """Return the cached vector for *text* (promoting it) or ``None``."""
        key = _key(text)
        with self._lock:
            vector = self._store.get(key)
            if vector is None:
                return None
            self._store.move_to_end(key)
            return vector

    def put(self, text: str, vector: list[float]) -> None:
        """Store *vector*, evicting least-recently-used entries if needed."""
        size = len(vector) * _BYTES_PER_FLOAT
        if not vector or size > self._max_bytes:
            return

        key = _key(text)
        with self._lock:
            old = self._store.pop(key, None)
            if old is not None:
                self._current_bytes -= len(old) * _BYTES_PER_FLOAT

            while self._current_bytes + size > self._max_bytes and self._store:
                _, evicted = self._store.popitem(last=False)
                self._current_bytes -= len(evicted) * _BYTES_PER_FLOAT
                logger.debug("Vector cache: evicted entry (%d floats)", len(evicted))

            self._store[key] = vector
            self._current_bytes += size

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    def __len__(self) -> int:
        return len(self._store)
