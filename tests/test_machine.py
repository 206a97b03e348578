"""Tests for the conversation state machine."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from docdesk import prompts
from docdesk.dialogue.machine import CANCEL_KEYWORDS, ConversationStateMachine, contains_keyword
from docdesk.exceptions import RepositoryError
from docdesk.models import DialogueState, Role
from docdesk.services.repository import InMemoryRepository

# Monday 2025-01-13, mid-morning UTC.
NOW = datetime(2025, 1, 13, 10, 0, tzinfo=UTC)


@pytest.fixture
def retriever():
    retriever = MagicMock()
    retriever.search.return_value = []
    return retriever


@pytest.fixture
def composer():
    composer = MagicMock()
    composer.compose.return_value = "Composed answer from your documents."
    return composer


@pytest.fixture
def machine(repository, retriever, composer):
    return ConversationStateMachine(repository, retriever, composer, clock=lambda: NOW)


def _book(machine, session_id: str, *, purpose: str = "   ") -> list:
    """Walk a full booking with valid answers; returns each TurnResult."""
    turns = [
        "I want to book appointment",
        "Jane Doe",
        "Jane@Example.com",
        "+1 (555) 123-4567",
        "tomorrow",
        "5 PM",
        purpose,
    ]
    return [machine.handle_message(text, session_id) for text in turns]


def _to_state(machine, count: int, session_id: str = "s1") -> None:
    """Send the first *count* booking answers; count 1 lands in the name state."""
    answers = ["book appointment", "Jane Doe", "jane@example.com", "+15551234567", "tomorrow", "5 PM"]
    for text in answers[:count]:
        machine.handle_message(text, session_id)


class TestKeywords:
    def test_match_is_case_insensitive(self):
        assert contains_keyword("Please CANCEL that", CANCEL_KEYWORDS)
        assert not contains_keyword("hello there", CANCEL_KEYWORDS)

    def test_multi_word_keywords(self):
        assert contains_keyword("can we start over?", CANCEL_KEYWORDS)

    @pytest.mark.parametrize("text", ["Christopher Stone", "stopwatch repair", "Quitman Road"])
    def test_keywords_inside_other_words_do_not_match(self, text: str):
        assert not contains_keyword(text, CANCEL_KEYWORDS)


# ── Booking flow ─────────────────────────────────────────────────────


class TestBookingFlow:
    def test_full_booking_persists_appointment(self, machine, repository):
        results = _book(machine, "s1")

        assert [r.state for r in results] == [
            DialogueState.APPOINTMENT_NAME,
            DialogueState.APPOINTMENT_EMAIL,
            DialogueState.APPOINTMENT_PHONE,
            DialogueState.APPOINTMENT_DATE,
            DialogueState.APPOINTMENT_TIME,
            DialogueState.APPOINTMENT_PURPOSE,
            DialogueState.CHAT,
        ]
        final = results[-1].reply
        assert "General consultation" in final
        assert "17:00" in final
        assert "2025-01-14" in final

        (appt,) = repository.list_appointments()
        assert appt.name == "Jane Doe"
        assert appt.email == "jane@example.com"
        assert appt.phone == "+15551234567"
        assert appt.date == "2025-01-14"
        assert appt.time == "17:00"
        assert appt.purpose == "General consultation"
        assert appt.session_id == "s1"

    def test_explicit_purpose_is_kept(self, machine, repository):
        _book(machine, "s1", purpose="Contract review")
        assert repository.list_appointments()[0].purpose == "Contract review"

    def test_draft_is_cleared_after_booking(self, machine):
        _book(machine, "s1")
        context = machine.get_history("s1").context
        assert context.state == DialogueState.CHAT
        assert context.draft.name is None

    def test_start_reply_asks_for_name(self, machine):
        result = machine.handle_message("Can you schedule a call?", "s1")
        assert result.reply == prompts.BOOKING_START_REPLY
        assert result.state == DialogueState.APPOINTMENT_NAME

    def test_name_state_uses_greeting_with_name(self, machine):
        machine.handle_message("book appointment", "s1")
        result = machine.handle_message("Jane Doe", "s1")
        assert "Jane Doe" in result.reply


class TestValidation:
    def test_single_character_name_is_rejected(self, machine):
        machine.handle_message("book appointment", "s1")
        result = machine.handle_message("A", "s1")
        assert result.reply == prompts.INVALID_NAME
        assert result.state == DialogueState.APPOINTMENT_NAME

    def test_two_character_name_is_accepted(self, machine):
        machine.handle_message("book appointment", "s1")
        result = machine.handle_message("Al", "s1")
        assert result.state == DialogueState.APPOINTMENT_EMAIL

    def test_invalid_email_reprompts(self, machine):
        _to_state(machine, 2)
        result = machine.handle_message("not-an-email", "s1")
        assert result.reply == prompts.INVALID_EMAIL
        assert result.state == DialogueState.APPOINTMENT_EMAIL

    def test_invalid_phone_reprompts(self, machine):
        _to_state(machine, 3)
        result = machine.handle_message("call the office", "s1")
        assert result.reply == prompts.INVALID_PHONE
        assert result.state == DialogueState.APPOINTMENT_PHONE

    def test_unparseable_date_reprompts(self, machine):
        _to_state(machine, 4)
        result = machine.handle_message("whenever", "s1")
        assert result.reply == prompts.INVALID_DATE
        assert result.state == DialogueState.APPOINTMENT_DATE

    def test_past_date_is_rejected(self, machine):
        _to_state(machine, 4)
        result = machine.handle_message("2025-01-12", "s1")
        assert result.reply == prompts.PAST_DATE
        assert result.state == DialogueState.APPOINTMENT_DATE

    def test_today_is_rejected_as_past(self, machine):
        _to_state(machine, 4)
        result = machine.handle_message("today", "s1")
        assert result.reply == prompts.PAST_DATE
        assert result.state == DialogueState.APPOINTMENT_DATE

    def test_out_of_range_offset_reprompts(self, machine):
        _to_state(machine, 4)
        result = machine.handle_message("in 999999999 days", "s1")
        assert result.reply == prompts.INVALID_DATE
        assert result.state == DialogueState.APPOINTMENT_DATE

    def test_name_containing_keyword_fragment_is_kept(self, machine):
        _to_state(machine, 1)
        result = machine.handle_message("Christopher Stone", "s1")
        assert result.state == DialogueState.APPOINTMENT_EMAIL
        assert machine.get_history("s1").context.draft.name == "Christopher Stone"

    def test_invalid_time_reprompts(self, machine):
        _to_state(machine, 5)
        result = machine.handle_message("around lunch", "s1")
        assert result.reply == prompts.INVALID_TIME
        assert result.state == DialogueState.APPOINTMENT_TIME


class TestCancellation:
    @pytest.mark.parametrize(
        ("count", "state"),
        [
            (1, DialogueState.APPOINTMENT_NAME),
            (2, DialogueState.APPOINTMENT_EMAIL),
            (3, DialogueState.APPOINTMENT_PHONE),
            (4, DialogueState.APPOINTMENT_DATE),
            (5, DialogueState.APPOINTMENT_TIME),
            (6, DialogueState.APPOINTMENT_PURPOSE),
        ],
    )
    def test_cancel_from_every_booking_state(self, machine, count: int, state: DialogueState):
        _to_state(machine, count)
        assert machine.get_history("s1").context.state == state

        result = machine.handle_message("cancel", "s1")

        assert result.reply == prompts.BOOKING_CANCELLED_REPLY
        assert result.state == DialogueState.CHAT
        draft = machine.get_history("s1").context.draft
        assert all(value is None for value in draft.model_dump().values())

    def test_cancel_mid_booking_resets_to_chat(self, machine):
        machine.handle_message("book appointment", "s1")
        machine.handle_message("Jane Doe", "s1")
        result = machine.handle_message("Actually, cancel that", "s1")

        assert result.reply == prompts.BOOKING_CANCELLED_REPLY
        assert result.state == DialogueState.CHAT
        draft = machine.get_history("s1").context.draft
        assert draft.name is None

    def test_new_booking_after_cancel_starts_fresh(self, machine):
        machine.handle_message("book appointment", "s1")
        machine.handle_message("Jane Doe", "s1")
        machine.handle_message("start over", "s1")
        machine.handle_message("book appointment", "s1")
        assert machine.get_history("s1").context.draft.name is None

    def test_cancel_keyword_while_chatting_is_a_question(self, machine, retriever):
        result = machine.handle_message("How do I cancel my subscription?", "s1")
        retriever.search.assert_called_once()
        assert result.state == DialogueState.CHAT

    def test_sessions_are_isolated(self, machine):
        machine.handle_message("book appointment", "s1")
        machine.handle_message("Jane Doe", "s1")
        result = machine.handle_message("hello", "s2")
        assert result.state == DialogueState.CHAT
        assert machine.get_history("s1").context.draft.name == "Jane Doe"


# ── Question answering ───────────────────────────────────────────────


class TestAnswering:
    def test_no_results_reply_mentions_query(self, machine, composer):
        result = machine.handle_message("What is the refund window?", "s1")
        assert "I couldn't find specific information about" in result.reply
        assert "What is the refund window?" in result.reply
        composer.compose.assert_not_called()

    def test_results_are_composed(self, machine, retriever, composer):
        retriever.search.return_value = ["result"]
        result = machine.handle_message("What is the refund window?", "s1")
        retriever.search.assert_called_once_with("What is the refund window?", k=2)
        composer.compose.assert_called_once_with("What is the refund window?", ["result"])
        assert result.reply == "Composed answer from your documents."


# ── Session locks ────────────────────────────────────────────────────


class TestSessionLocks:
    def test_locks_are_released_after_each_turn(self, machine):
        for n in range(50):
            machine.handle_message("hello", f"session-{n}")
        assert machine._session_locks == {}

    def test_lock_exists_only_while_held(self, machine):
        with machine._session_lock("s1"):
            assert machine._session_locks["s1"].holders == 1
        assert "s1" not in machine._session_locks

    def test_clear_session_leaves_no_lock(self, machine):
        machine.handle_message("book appointment", "s1")
        machine.clear_session("s1")
        assert machine._session_locks == {}


# ── Persistence ──────────────────────────────────────────────────────


class TestPersistence:
    def test_every_turn_is_logged(self, machine):
        machine.handle_message("hello", "s1")
        machine.handle_message("book appointment", "s1")
        messages = machine.get_history("s1").messages
        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT] * 2
        assert messages[0].content == "hello"
        assert messages[3].content == prompts.BOOKING_START_REPLY

    def test_session_id_is_generated_when_missing(self, machine):
        result = machine.handle_message("hello")
        assert result.session_id
        assert len(machine.get_history(result.session_id).messages) == 2

    def test_unknown_session_history_is_empty(self, machine):
        conversation = machine.get_history("never-seen")
        assert conversation.messages == []
        assert conversation.context.state == DialogueState.CHAT

    def test_clear_session(self, machine):
        machine.handle_message("book appointment", "s1")
        assert machine.clear_session("s1") is True
        assert machine.get_history("s1").messages == []
        assert machine.clear_session("s1") is False

    def test_load_failure_returns_apology(self, retriever, composer):
        repository = MagicMock()
        repository.get_conversation.side_effect = RepositoryError("store down")
        machine = ConversationStateMachine(repository, retriever, composer)

        result = machine.handle_message("hello", "s1")

        assert result.reply == prompts.TURN_FAILURE_REPLY
        assert result.state == DialogueState.CHAT
        repository.save_conversation.assert_not_called()

    def test_save_failure_still_returns_reply(self, retriever, composer):
        repository = MagicMock()
        repository.get_conversation.return_value = None
        repository.save_conversation.side_effect = RepositoryError("store down")
        machine = ConversationStateMachine(repository, retriever, composer)

        result = machine.handle_message("book appointment", "s1")

        assert result.reply == prompts.BOOKING_START_REPLY

    def test_appointment_save_failure_resets_booking(self, retriever, composer):
        class FailingRepository(InMemoryRepository):
            def save_appointment(self, appointment):
                raise RepositoryError("insert failed")

        machine = ConversationStateMachine(
            FailingRepository(), retriever, composer, clock=lambda: NOW,
        )
        results = _book(machine, "s1")

        assert results[-1].reply == prompts.BOOKING_FAILED_REPLY
        assert results[-1].state == DialogueState.CHAT

    def test_unexpected_error_keeps_state_and_logs_turn(self, machine, retriever):
        retriever.search.side_effect = RuntimeError("index exploded")
        result = machine.handle_message("What is the refund window?", "s1")

        assert result.reply == prompts.TURN_FAILURE_REPLY
        assert result.state == DialogueState.CHAT
        assert len(machine.get_history("s1").messages) == 2
