"""MongoDB implementation of the :class:`~docdesk.services.repository.Repository`.

Collections: ``documents``, ``conversations``, ``appointments``.  Each
record is stored as the model's JSON dump with ``_id`` set to its key
(document id, session id or appointment id).
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from docdesk.exceptions import (
    AppointmentNotFoundError,
    DocumentNotFoundError,
    RepositoryError,
)
from docdesk.models import Appointment, AppointmentStatus, Conversation, Document
from docdesk.services.repository import APPOINTMENT_LIST_LIMIT

logger = logging.getLogger(__name__)


def _to_record(key: str, model) -> dict[str, Any]:
    record = model.model_dump(mode="json")
    record["_id"] = key
    return record


def _strip(record: dict[str, Any]) -> dict[str, Any]:
    record.pop("_id", None)
    return record


class MongoRepository:
    """pymongo-backed repository.  Every driver error becomes a
    :class:`RepositoryError`."""

    def __init__(self, client: MongoClient, database_name: str) -> None:
        self._client = client
        self._db: Database = client[database_name]
        self._documents = self._db["documents"]
        self._conversations = self._db["conversations"]
        self._appointments = self._db["appointments"]
        self._ensure_indexes()

    @classmethod
    def from_url(cls, url: str, database_name: str) -> MongoRepository:
        client = MongoClient(url, serverSelectionTimeoutMS=5000)
        logger.info("Connected to MongoDB database %s", database_name)
        return cls(client, database_name)

    def _ensure_indexes(self) -> None:
        try:
            self._documents.create_index([("created_at", ASCENDING)])
            self._appointments.create_index([("date", ASCENDING), ("time", ASCENDING)])
            self._appointments.create_index([("status", ASCENDING)])
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to create MongoDB indexes: {exc}") from exc

    # ── Documents ────────────────────────────────────────────────────

    def save_document(self, document: Document) -> None:
        try:
            self._documents.replace_one(
                {"_id": document.id}, _to_record(document.id, document), upsert=True,
            )
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to save document {document.id}: {exc}") from exc

    def get_document(self, document_id: str) -> Document | None:
        try:
            record = self._documents.find_one({"_id": document_id})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to load document {document_id}: {exc}") from exc
        return Document.model_validate(_strip(record)) if record else None

    def list_documents(self) -> list[Document]:
        try:
            records = list(self._documents.find().sort("created_at", ASCENDING))
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to list documents: {exc}") from exc
        return [Document.model_validate(_strip(r)) for r in records]

    def delete_document(self, document_id: str) -> None:
        try:
            result = self._documents.delete_one({"_id": document_id})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to delete document {document_id}: {exc}") from exc
        if result.deleted_count == 0:
            raise DocumentNotFoundError(f"Document {document_id} not found")

    def update_chunk_embeddings(self, document_id: str, vectors: dict[int, list[float]]) -> None:
        if not vectors:
            return
        update = {f"chunks.{i}.embedding": list(v) for i, v in vectors.items()}
        try:
            result = self._documents.update_one({"_id": document_id}, {"$set": update})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to store embeddings for {document_id}: {exc}") from exc
        if result.matched_count == 0:
            raise DocumentNotFoundError(f"Document {document_id} not found")

    # ── Conversations ────────────────────────────────────────────────

    def get_conversation(self, session_id: str) -> Conversation | None:
        try:
            record = self._conversations.find_one({"_id": session_id})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to load conversation {session_id}: {exc}") from exc
        return Conversation.model_validate(_strip(record)) if record else None

    def save_conversation(self, conversation: Conversation) -> None:
        try:
            self._conversations.replace_one(
                {"_id": conversation.session_id},
                _to_record(conversation.session_id, conversation),
                upsert=True,
            )
        except PyMongoError as exc:
            raise RepositoryError(
                f"Failed to save conversation {conversation.session_id}: {exc}"
            ) from exc

    def delete_conversation(self, session_id: str) -> bool:
        try:
            return self._conversations.delete_one({"_id": session_id}).deleted_count > 0
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to delete conversation {session_id}: {exc}") from exc

    # ── Appointments ─────────────────────────────────────────────────

    def save_appointment(self, appointment: Appointment) -> None:
        try:
            self._appointments.insert_one(_to_record(appointment.id, appointment))
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to save appointment: {exc}") from exc

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        try:
            record = self._appointments.find_one({"_id": appointment_id})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to load appointment {appointment_id}: {exc}") from exc
        return Appointment.model_validate(_strip(record)) if record else None

    def list_appointments(
        self, status: AppointmentStatus | None = None, on_date: str | None = None,
    ) -> list[Appointment]:
        query: dict[str, Any] = {}
        if status is not None:
            query["status"] = str(status)
        if on_date is not None:
            query["date"] = on_date
        try:
            records = list(
                self._appointments.find(query)
                .sort([("date", ASCENDING), ("time", ASCENDING)])
                .limit(APPOINTMENT_LIST_LIMIT)
            )
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to list appointments: {exc}") from exc
        return [Appointment.model_validate(_strip(r)) for r in records]

    def update_appointment_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment:
        try:
            result = self._appointments.update_one(
                {"_id": appointment_id}, {"$set": {"status": str(status)}},
            )
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to update appointment {appointment_id}: {exc}") from exc
        if result.matched_count == 0:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return self.get_appointment(appointment_id)

    def delete_appointment(self, appointment_id: str) -> None:
        try:
            result = self._appointments.delete_one({"_id": appointment_id})
        except PyMongoError as exc:
            raise RepositoryError(f"Failed to delete appointment {appointment_id}: {exc}") from exc
        if result.deleted_count == 0:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
