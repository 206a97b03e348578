"""Hybrid semantic + keyword retrieval over the document index.

Ranking rules
-------------
* **General queries** ("summary", "tell me about", ...) skip matching and
  return the first chunks of every document with a fixed high score.
* **Keyword only**: used when no chunk anywhere is embedded, or when the
  query itself cannot be embedded.  A document's score is the total count
  of literal, case-insensitive occurrences of the query tokens in its full
  text; its relevant chunks are those containing any token.
* **Hybrid**: chunks whose cosine similarity to the query exceeds the
  semantic threshold become candidates; keyword candidates are added with
  their score divided by the keyword divisor so that raw occurrence counts
  do not swamp similarity scores.

Results are grouped per document (at most three chunks, best first) and
documents are ranked by their best chunk score.
"""

from __future__ import annotations

import logging
import string
from enum import StrEnum

from pydantic import BaseModel

from docdesk.config import KEYWORD_SCORE_DIVISOR, SEMANTIC_THRESHOLD
from docdesk.exceptions import EmbeddingServiceError
from docdesk.models import Chunk, Document
from docdesk.retrieval.index import DocumentIndex
from docdesk.retrieval.similarity import cosine_similarity
from docdesk.services.embedding_client import EmbeddingClient

logger = logging.getLogger(__name__)

GENERAL_QUERY_PHRASES = (
    "what is in",
    "what does",
    "tell me about",
    "content",
    "summary",
    "document",
    "information",
)
GENERAL_QUERY_SCORE = 10.0
MAX_CHUNKS_PER_DOCUMENT = 3
MIN_TOKEN_LENGTH = 3


class SearchType(StrEnum):
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"
    GENERAL = "general"


class ScoredChunk(BaseModel):
    index: int
    page: int
    text: str
    score: float
    method: SearchType


class SearchResult(BaseModel):
    document_id: str
    filename: str
    score: float
    chunks: list[ScoredChunk]
    search_type: SearchType


# ── Keyword helpers ──────────────────────────────────────────────────


def query_tokens(query: str) -> list[str]:
    """Lower-cased whitespace tokens longer than two characters.

    Surrounding punctuation is stripped first so that "policy?" matches
    "policy".
    """
    tokens = (t.strip(string.punctuation) for t in query.lower().split())
    return [t for t in tokens if len(t) >= MIN_TOKEN_LENGTH]


def is_general_query(query: str) -> bool:
    lowered = query.lower()
    return any(phrase in lowered for phrase in GENERAL_QUERY_PHRASES)


def keyword_score(text: str, tokens: list[str]) -> int:
    lowered = text.lower()
    return sum(lowered.count(token) for token in tokens)


def _scored(chunk: Chunk, position: int, score: float, method: SearchType) -> ScoredChunk:
    return ScoredChunk(
        index=position,
        page=chunk.metadata.page,
        text=chunk.text,
        score=score,
        method=method,
    )


class HybridRetriever:
    def __init__(
        self,
        index: DocumentIndex,
        embedder: EmbeddingClient,
        *,
        semantic_threshold: float = SEMANTIC_THRESHOLD,
        keyword_divisor: float = KEYWORD_SCORE_DIVISOR,
    ) -> None:
        self._index = index
        self._embedder = embedder
        self._semantic_threshold = semantic_threshold
        self._keyword_divisor = keyword_divisor

    def search(self, query: str, k: int = 3) -> list[SearchResult]:
        """Return up to *k* documents ranked by relevance to *query*."""
        documents = self._index.snapshot()
        if not documents or not query.strip() or k <= 0:
            return []

        if is_general_query(query):
            return self._general_search(documents, k)

        if not any(doc.embedded_chunk_count for doc in documents):
            return self._rank(self._keyword_candidates(documents, query, 1.0), documents, k)

        try:
            query_vector = self._embedder.embed(query)
        except EmbeddingServiceError as exc:
            logger.warning("Query embedding failed, falling back to keyword search: %s", exc)
            return self._rank(self._keyword_candidates(documents, query, 1.0), documents, k)

        candidates = self._semantic_candidates(documents, query_vector)
        keyword = self._keyword_candidates(documents, query, self._keyword_divisor)
        for doc_id, chunks in keyword.items():
            merged = candidates.setdefault(doc_id, {})
            for position, scored in chunks.items():
                existing = merged.get(position)
                if existing is None:
                    merged[position] = scored
                else:
                    merged[position] = existing.model_copy(update={
                        "score": max(existing.score, scored.score),
                        "method": SearchType.HYBRID,
                    })
        return self._rank(candidates, documents, k)

    # ── Candidate generation ─────────────────────────────────────────

    def _semantic_candidates(
        self, documents: list[Document], query_vector: list[float],
    ) -> dict[str, dict[int, ScoredChunk]]:
        candidates: dict[str, dict[int, ScoredChunk]] = {}
        for doc in documents:
            for position, chunk in enumerate(doc.chunks):
                if not chunk.is_embedded:
                    continue
                score = cosine_similarity(query_vector, chunk.embedding)
                if score > self._semantic_threshold:
                    candidates.setdefault(doc.id, {})[position] = _scored(
                        chunk, position, score, SearchType.SEMANTIC,
                    )
        return candidates

    def _keyword_candidates(
        self, documents: list[Document], query: str, divisor: float,
    ) -> dict[str, dict[int, ScoredChunk]]:
        tokens = query_tokens(query)
        candidates: dict[str, dict[int, ScoredChunk]] = {}
        if not tokens:
            return candidates
        for doc in documents:
            total = keyword_score(doc.text, tokens)
            if total <= 0:
                continue
            score = total / divisor
            for position, chunk in enumerate(doc.chunks):
                lowered = chunk.text.lower()
                if any(token in lowered for token in tokens):
                    candidates.setdefault(doc.id, {})[position] = _scored(
                        chunk, position, score, SearchType.KEYWORD,
                    )
        return candidates

    def _general_search(self, documents: list[Document], k: int) -> list[SearchResult]:
        results = [
            SearchResult(
                document_id=doc.id,
                filename=doc.filename,
                score=GENERAL_QUERY_SCORE,
                chunks=[
                    _scored(chunk, i, GENERAL_QUERY_SCORE, SearchType.GENERAL)
                    for i, chunk in enumerate(doc.chunks[:MAX_CHUNKS_PER_DOCUMENT])
                ],
                search_type=SearchType.GENERAL,
            )
            for doc in documents
            if doc.chunks
        ]
        return results[:k]

    # ── Grouping & ranking ───────────────────────────────────────────

    def _rank(
        self,
        candidates: dict[str, dict[int, ScoredChunk]],
        documents: list[Document],
        k: int,
    ) -> list[SearchResult]:
        filenames = {doc.id: doc.filename for doc in documents}
        results: list[SearchResult] = []
        for doc_id, by_position in candidates.items():
            if not by_position:
                continue
            chunks = sorted(by_position.values(), key=lambda c: (-c.score, c.index))
            chunks = chunks[:MAX_CHUNKS_PER_DOCUMENT]
            methods = {c.method for c in chunks}
            if methods == {SearchType.KEYWORD}:
                search_type = SearchType.KEYWORD
            elif methods == {SearchType.SEMANTIC}:
                search_type = SearchType.SEMANTIC
            else:
                search_type = SearchType.HYBRID
            results.append(SearchResult(
                document_id=doc_id,
                filename=filenames[doc_id],
                score=chunks[0].score,
                chunks=chunks,
                search_type=search_type,
            ))

        # Equal scores: semantic evidence ranks ahead of keyword-only.
        results.sort(key=lambda r: (r.score, r.search_type != SearchType.KEYWORD), reverse=True)
        return results[:k]
