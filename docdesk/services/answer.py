"""Grounded answer generation.

Builds a single prompt from retrieved chunk groups and hands it to the
Anthropic LLM.  Generation is attempted exactly once; any failure
(including the request timeout) becomes a fixed apology.
"""

from __future__ import annotations

import logging

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser

from docdesk.config import ANTHROPIC_API_KEY, LLM_TIMEOUT_SECONDS, MODEL_NAME
from docdesk.prompts import ANSWER_FAILURE_REPLY, ANSWER_PROMPT
from docdesk.retrieval.retriever import SearchResult
from docdesk.services.metrics import metrics

logger = logging.getLogger(__name__)


def _build_llm() -> ChatAnthropic:
    """Build the answer LLM.  Retries are disabled: one attempt per question."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.3,
        max_tokens=1024,
        timeout=LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


def build_context(results: list[SearchResult]) -> str:
    """Render retrieved chunks, labelled by source document and method."""
    sections = []
    for result in results:
        header = (
            f"--- From document: {result.filename} "
            f"(retrieved by {result.search_type} search, score {result.score:.2f}) ---"
        )
        body = "\n\n".join(chunk.text.strip() for chunk in result.chunks)
        sections.append(f"{header}\n{body}")
    return "\n\n".join(sections)


class AnswerComposer:
    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm or _build_llm()
        self._parser = StrOutputParser()

    def compose(self, question: str, results: list[SearchResult]) -> str:
        """Answer *question* from *results*; never raises."""
        messages = ANSWER_PROMPT.format_messages(
            context=build_context(results), question=question,
        )
        try:
            with metrics.track("anthropic", "answer"):
                response = self._llm.invoke(messages)
            return self._parser.invoke(response)
        except Exception:
            logger.exception("Answer generation failed")
            return ANSWER_FAILURE_REPLY
