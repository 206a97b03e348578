"""Per-session conversation controller.

Each incoming message runs through a small LangGraph ``StateGraph``::

    route → cancel          → END
          → start_booking   → END
          → collect         → END
          → answer          → END

``route`` applies the rules in priority order: a cancellation keyword in
any booking state, a booking keyword while chatting, any other message in
a booking state, and finally document question answering.

``collect`` dispatches on the current :class:`DialogueState` to one
handler per booking field.  A handler either rejects the input (re-prompt,
same state) or stores the cleaned value and advances to the next field.

Unlike an agent checkpointer, session state lives in the durable store:
the conversation (messages + dialogue context) is loaded at the start of
the turn and saved at the end, under a per-session lock so two messages
for the same session never interleave.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import NamedTuple

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from docdesk import prompts
from docdesk.dialogue.dateparse import parse_date, parse_time
from docdesk.dialogue.validators import clean_email, clean_name, clean_phone
from docdesk.exceptions import RepositoryError
from docdesk.models import (
    DEFAULT_PURPOSE,
    Appointment,
    AppointmentDraft,
    Conversation,
    ConversationContext,
    DialogueState,
    Role,
)
from docdesk.retrieval.retriever import HybridRetriever
from docdesk.services.answer import AnswerComposer
from docdesk.services.repository import Repository

logger = logging.getLogger(__name__)

CANCEL_KEYWORDS = (
    "cancel",
    "stop",
    "quit",
    "exit",
    "start again",
    "restart",
    "start over",
    "wrong",
    "mistake",
)
BOOKING_KEYWORDS = (
    "book appointment",
    "schedule",
    "call me",
    "meeting",
    "call back",
    "contact me",
)
RETRIEVAL_K = 2


def contains_keyword(message: str, keywords: tuple[str, ...]) -> bool:
    """Whole-word, case-insensitive match, so "Christopher" never reads as "stop"."""
    lowered = message.lower()
    return any(re.search(rf"\b{re.escape(keyword)}\b", lowered) for keyword in keywords)


class _SessionLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class TurnResult(NamedTuple):
    reply: str
    state: DialogueState
    session_id: str


class TurnState(TypedDict, total=False):
    """Values flowing through the per-turn graph."""

    message: str
    session_id: str
    context: ConversationContext
    route: str
    reply: str


Collector = Callable[[ConversationContext, str, str], str]


class ConversationStateMachine:
    def __init__(
        self,
        repository: Repository,
        retriever: HybridRetriever,
        composer: AnswerComposer,
        *,
        retrieval_k: int = RETRIEVAL_K,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._retriever = retriever
        self._composer = composer
        self._retrieval_k = retrieval_k
        self._clock = clock
        self._session_locks: dict[str, _SessionLock] = {}
        self._locks_guard = threading.Lock()
        self._collectors: dict[DialogueState, Collector] = {
            DialogueState.APPOINTMENT_NAME: self._collect_name,
            DialogueState.APPOINTMENT_EMAIL: self._collect_email,
            DialogueState.APPOINTMENT_PHONE: self._collect_phone,
            DialogueState.APPOINTMENT_DATE: self._collect_date,
            DialogueState.APPOINTMENT_TIME: self._collect_time,
            DialogueState.APPOINTMENT_PURPOSE: self._collect_purpose,
        }
        self._graph = self._build_graph()

    # ── Public API ───────────────────────────────────────────────────

    def handle_message(self, text: str, session_id: str | None = None) -> TurnResult:
        """Process one user message and persist the session.  Never raises."""
        session_id = session_id or str(uuid.uuid4())
        with self._session_lock(session_id):
            try:
                conversation = self._repository.get_conversation(session_id)
            except RepositoryError:
                logger.exception("Could not load conversation %s", session_id)
                return TurnResult(prompts.TURN_FAILURE_REPLY, DialogueState.CHAT, session_id)

            if conversation is None:
                conversation = Conversation(session_id=session_id)
            conversation.add(Role.USER, text)

            try:
                result = self._graph.invoke({
                    "message": text,
                    "session_id": session_id,
                    "context": conversation.context.model_copy(deep=True),
                })
                conversation.context = result["context"]
                reply = result["reply"]
            except Exception:
                logger.exception("Error handling message for session %s", session_id)
                reply = prompts.TURN_FAILURE_REPLY

            conversation.add(Role.ASSISTANT, reply)
            conversation.updated_at = conversation.messages[-1].timestamp
            try:
                self._repository.save_conversation(conversation)
            except RepositoryError:
                logger.exception("Could not persist conversation %s", session_id)

            return TurnResult(reply, conversation.context.state, session_id)

    def get_history(self, session_id: str) -> Conversation:
        """Return the stored conversation, or an empty one in ``chat``."""
        conversation = self._repository.get_conversation(session_id)
        return conversation or Conversation(session_id=session_id)

    def clear_session(self, session_id: str) -> bool:
        with self._session_lock(session_id):
            return self._repository.delete_conversation(session_id)

    # ── Graph ────────────────────────────────────────────────────────

    def _build_graph(self):
        graph = StateGraph(TurnState)
        graph.add_node("route", self._route)
        graph.add_node("cancel", self._cancel)
        graph.add_node("start_booking", self._start_booking)
        graph.add_node("collect", self._collect)
        graph.add_node("answer", self._answer)

        graph.set_entry_point("route")
        graph.add_conditional_edges(
            "route",
            lambda turn: turn["route"],
            {
                "cancel": "cancel",
                "start_booking": "start_booking",
                "collect": "collect",
                "answer": "answer",
            },
        )
        for node in ("cancel", "start_booking", "collect", "answer"):
            graph.add_edge(node, END)
        return graph.compile()

    def _route(self, turn: TurnState) -> dict:
        message = turn["message"]
        booking = turn["context"].state != DialogueState.CHAT
        if booking and contains_keyword(message, CANCEL_KEYWORDS):
            route = "cancel"
        elif not booking and contains_keyword(message, BOOKING_KEYWORDS):
            route = "start_booking"
        elif booking:
            route = "collect"
        else:
            route = "answer"
        logger.debug("Session %s routed to %s", turn["session_id"], route)
        return {"route": route}

    def _cancel(self, turn: TurnState) -> dict:
        return {"context": ConversationContext(), "reply": prompts.BOOKING_CANCELLED_REPLY}

    def _start_booking(self, turn: TurnState) -> dict:
        context = ConversationContext(
            state=DialogueState.APPOINTMENT_NAME, draft=AppointmentDraft(),
        )
        return {"context": context, "reply": prompts.BOOKING_START_REPLY}

    def _collect(self, turn: TurnState) -> dict:
        context = turn["context"]
        collector = self._collectors[context.state]
        reply = collector(context, turn["message"], turn["session_id"])
        return {"context": context, "reply": reply}

    def _answer(self, turn: TurnState) -> dict:
        question = turn["message"]
        results = self._retriever.search(question, k=self._retrieval_k)
        if not results:
            reply = prompts.NO_RESULTS_REPLY.format(query=question)
        else:
            reply = self._composer.compose(question, results)
        return {"context": turn["context"], "reply": reply}

    # ── Booking field collectors ─────────────────────────────────────

    def _collect_name(self, context: ConversationContext, message: str, session_id: str) -> str:
        name = clean_name(message)
        if name is None:
            return prompts.INVALID_NAME
        context.draft.name = name
        context.state = DialogueState.APPOINTMENT_EMAIL
        return prompts.ASK_EMAIL.format(name=name)

    def _collect_email(self, context: ConversationContext, message: str, session_id: str) -> str:
        email = clean_email(message)
        if email is None:
            return prompts.INVALID_EMAIL
        context.draft.email = email
        context.state = DialogueState.APPOINTMENT_PHONE
        return prompts.ASK_PHONE

    def _collect_phone(self, context: ConversationContext, message: str, session_id: str) -> str:
        phone = clean_phone(message)
        if phone is None:
            return prompts.INVALID_PHONE
        context.draft.phone = phone
        context.state = DialogueState.APPOINTMENT_DATE
        return prompts.ASK_DATE

    def _collect_date(self, context: ConversationContext, message: str, session_id: str) -> str:
        now = self._clock() if self._clock else datetime.now(UTC)
        parsed = parse_date(message, now=now)
        if parsed is None:
            return prompts.INVALID_DATE
        # A date starts at midnight UTC, so "today" is already in the past.
        if datetime.fromisoformat(parsed).replace(tzinfo=UTC) < now:
            return prompts.PAST_DATE
        context.draft.date = parsed
        context.state = DialogueState.APPOINTMENT_TIME
        return prompts.ASK_TIME.format(date=parsed)

    def _collect_time(self, context: ConversationContext, message: str, session_id: str) -> str:
        parsed = parse_time(message)
        if parsed is None:
            return prompts.INVALID_TIME
        context.draft.time = parsed
        context.state = DialogueState.APPOINTMENT_PURPOSE
        return prompts.ASK_PURPOSE

    def _collect_purpose(self, context: ConversationContext, message: str, session_id: str) -> str:
        draft = context.draft
        draft.purpose = message.strip() or DEFAULT_PURPOSE
        appointment = Appointment(
            name=draft.name,
            email=draft.email,
            phone=draft.phone,
            date=draft.date,
            time=draft.time,
            purpose=draft.purpose,
            session_id=session_id,
        )

        # The booking ends here either way; the draft is discarded.
        context.state = DialogueState.CHAT
        context.draft = AppointmentDraft()
        try:
            self._repository.save_appointment(appointment)
        except RepositoryError:
            logger.exception("Failed to save appointment for session %s", session_id)
            return prompts.BOOKING_FAILED_REPLY

        logger.info("Appointment %s booked for session %s", appointment.id, session_id)
        return prompts.BOOKING_CONFIRMED_REPLY.format(**appointment.model_dump(include={
            "name", "email", "phone", "date", "time", "purpose",
        }))

    # ── Internal ─────────────────────────────────────────────────────

    @contextmanager
    def _session_lock(self, session_id: str) -> Iterator[None]:
        """Serialize turns for one session; the entry is dropped once unused."""
        with self._locks_guard:
            entry = self._session_locks.get(session_id)
            if entry is None:
                entry = self._session_locks[session_id] = _SessionLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._session_locks[session_id]
