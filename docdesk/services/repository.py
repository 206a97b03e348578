"""Durable store contract and the in-memory implementation.

The in-memory repository is used by the test suite and whenever
``MONGODB_URL`` is not configured.  It stores deep copies so callers can
never mutate persisted state by accident, which keeps its behaviour
aligned with :class:`~docdesk.services.mongo_repository.MongoRepository`.
"""

from __future__ import annotations

import threading
from typing import Protocol

from docdesk.exceptions import AppointmentNotFoundError, DocumentNotFoundError
from docdesk.models import Appointment, AppointmentStatus, Conversation, Document

APPOINTMENT_LIST_LIMIT = 50


class Repository(Protocol):
    """CRUD over documents, conversations and appointments."""

    # Documents
    def save_document(self, document: Document) -> None: ...
    def get_document(self, document_id: str) -> Document | None: ...
    def list_documents(self) -> list[Document]: ...
    def delete_document(self, document_id: str) -> None: ...
    def update_chunk_embeddings(self, document_id: str, vectors: dict[int, list[float]]) -> None: ...

    # Conversations
    def get_conversation(self, session_id: str) -> Conversation | None: ...
    def save_conversation(self, conversation: Conversation) -> None: ...
    def delete_conversation(self, session_id: str) -> bool: ...

    # Appointments
    def save_appointment(self, appointment: Appointment) -> None: ...
    def get_appointment(self, appointment_id: str) -> Appointment | None: ...
    def list_appointments(
        self, status: AppointmentStatus | None = None, on_date: str | None = None,
    ) -> list[Appointment]: ...
    def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment: ...
    def delete_appointment(self, appointment_id: str) -> None: ...


class InMemoryRepository:
    """Dict-backed :class:`Repository`."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._conversations: dict[str, Conversation] = {}
        self._appointments: dict[str, Appointment] = {}
        self._lock = threading.Lock()

    # ── Documents ────────────────────────────────────────────────────

    def save_document(self, document: Document) -> None:
        with self._lock:
            self._documents[document.id] = document.model_copy(deep=True)

    def get_document(self, document_id: str) -> Document | None:
        with self._lock:
            doc = self._documents.get(document_id)
            return doc.model_copy(deep=True) if doc else None

    def list_documents(self) -> list[Document]:
        with self._lock:
            docs = [d.model_copy(deep=True) for d in self._documents.values()]
        return sorted(docs, key=lambda d: d.created_at)

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            if self._documents.pop(document_id, None) is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")

    def update_chunk_embeddings(self, document_id: str, vectors: dict[int, list[float]]) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            for index, vector in vectors.items():
                if 0 <= index < len(doc.chunks):
                    doc.chunks[index].embedding = list(vector)

    # ── Conversations ────────────────────────────────────────────────

    def get_conversation(self, session_id: str) -> Conversation | None:
        with self._lock:
            conv = self._conversations.get(session_id)
            return conv.model_copy(deep=True) if conv else None

    def save_conversation(self, conversation: Conversation) -> None:
        with self._lock:
            self._conversations[conversation.session_id] = conversation.model_copy(deep=True)

    def delete_conversation(self, session_id: str) -> bool:
        with self._lock:
            return self._conversations.pop(session_id, None) is not None

    # ── Appointments ─────────────────────────────────────────────────

    def save_appointment(self, appointment: Appointment) -> None:
        with self._lock:
            self._appointments[appointment.id] = appointment.model_copy(deep=True)

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        with self._lock:
            appt = self._appointments.get(appointment_id)
            return appt.model_copy(deep=True) if appt else None

    def list_appointments(
        self, status: AppointmentStatus | None = None, on_date: str | None = None,
    ) -> list[Appointment]:
        with self._lock:
            appts = [a.model_copy(deep=True) for a in self._appointments.values()]
        if status is not None:
            appts = [a for a in appts if a.status == status]
        if on_date is not None:
            appts = [a for a in appts if a.date == on_date]
        appts.sort(key=lambda a: (a.date, a.time))
        return appts[:APPOINTMENT_LIST_LIMIT]

    def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment:
        with self._lock:
            appt = self._appointments.get(appointment_id)
            if appt is None:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
            appt.status = status
            return appt.model_copy(deep=True)

    def delete_appointment(self, appointment_id: str) -> None:
        with self._lock:
            if self._appointments.pop(appointment_id, None) is None:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
