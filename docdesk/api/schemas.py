"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from docdesk.models import AppointmentStatus, DialogueState, EmbeddingStatus, Role


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""

    message: str = Field(..., min_length=1, max_length=4000, description="The user's message")
    session_id: str | None = Field(
        None,
        min_length=1,
        max_length=100,
        description="Session identifier; a new one is generated when omitted",
    )


class ChatResponse(BaseModel):
    reply: str = Field(..., description="The assistant's response message")
    session_id: str = Field(..., description="The session ID for this conversation")
    state: DialogueState = Field(..., description="Dialogue state after this turn")


class MessageOut(BaseModel):
    role: Role
    content: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    session_id: str
    messages: list[MessageOut]
    state: DialogueState


class DocumentUploadResponse(BaseModel):
    id: str
    filename: str
    kind: str
    chunk_count: int
    embedding_status: EmbeddingStatus


class EmbeddingStatusResponse(BaseModel):
    document_id: str
    status: EmbeddingStatus


class ReprocessResponse(BaseModel):
    documents: int


class AppointmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    date: str = Field(..., description="YYYY-MM-DD or a natural expression like 'tomorrow'")
    time: str = Field(..., description="HH:MM or e.g. '5:30 PM'")
    purpose: str | None = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class OkResponse(BaseModel):
    ok: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "docdesk-assistant"
    documents: int = 0
