"""Domain models shared by the retrieval, dialogue and storage layers.

All models are pydantic so they serialise straight into the durable
store (``model_dump(mode="json")``) and back (``model_validate``).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ── Documents ────────────────────────────────────────────────────────


class FileKind(StrEnum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


class ChunkMetadata(BaseModel):
    index: int
    page: int


class Chunk(BaseModel):
    """A bounded span of a document's text.

    ``embedding`` is empty until the background scheduler (or a full
    reprocess) has computed it.
    """

    text: str
    embedding: list[float] = Field(default_factory=list)
    metadata: ChunkMetadata

    @property
    def is_embedded(self) -> bool:
        return bool(self.embedding)


class Document(BaseModel):
    id: str = Field(default_factory=_new_id)
    filename: str
    text: str
    kind: FileKind
    chunks: list[Chunk] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def embedded_chunk_count(self) -> int:
        return sum(1 for c in self.chunks if c.is_embedded)


# ── Conversations ────────────────────────────────────────────────────


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class DialogueState(StrEnum):
    """Closed set of dialogue states.

    The booking states are listed in collection order; each one names the
    next draft field to fill.
    """

    CHAT = "chat"
    APPOINTMENT_NAME = "appointment_name"
    APPOINTMENT_EMAIL = "appointment_email"
    APPOINTMENT_PHONE = "appointment_phone"
    APPOINTMENT_DATE = "appointment_date"
    APPOINTMENT_TIME = "appointment_time"
    APPOINTMENT_PURPOSE = "appointment_purpose"


class Message(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class AppointmentDraft(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    date: str | None = None
    time: str | None = None
    purpose: str | None = None


class ConversationContext(BaseModel):
    state: DialogueState = DialogueState.CHAT
    draft: AppointmentDraft = Field(default_factory=AppointmentDraft)


class Conversation(BaseModel):
    session_id: str
    messages: list[Message] = Field(default_factory=list)
    context: ConversationContext = Field(default_factory=ConversationContext)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def add(self, role: Role, content: str) -> None:
        self.messages.append(Message(role=role, content=content))


# ── Appointments ─────────────────────────────────────────────────────


class AppointmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


DEFAULT_PURPOSE = "General consultation"


class Appointment(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    phone: str
    date: str  # YYYY-MM-DD, UTC
    time: str  # HH:MM, 24-hour
    purpose: str = DEFAULT_PURPOSE
    status: AppointmentStatus = AppointmentStatus.PENDING
    session_id: str
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def scheduled_for(self) -> datetime:
        return datetime.fromisoformat(f"{self.date}T{self.time}:00+00:00")


# ── Embedding queue ──────────────────────────────────────────────────


class EmbeddingStatus(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
