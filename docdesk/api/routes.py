"""FastAPI route definitions for the DocDesk API."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile

from docdesk.api.schemas import (
    AppointmentCreate,
    AppointmentStatusUpdate,
    ChatRequest,
    ChatResponse,
    DocumentUploadResponse,
    EmbeddingStatusResponse,
    HealthResponse,
    HistoryResponse,
    MessageOut,
    OkResponse,
    ReprocessResponse,
)
from docdesk.exceptions import (
    AppointmentNotFoundError,
    DocumentNotFoundError,
    UnsupportedFileError,
)
from docdesk.models import Appointment, AppointmentStatus
from docdesk.retrieval.retriever import SearchResult
from docdesk.services.appointments import AppointmentValidationError
from docdesk.services.container import Services
from docdesk.services.documents import DocumentSummary

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_services(request: Request) -> Services:
    """Retrieve the service graph built during the FastAPI lifespan."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return services


def _internal_error(request: Request, what: str, exc: Exception) -> HTTPException:
    """Log the traceback server-side and return a generic 500."""
    request_id = getattr(request.state, "request_id", "?")
    logger.error("[%s] %s", request_id, what, exc_info=exc)
    return HTTPException(status_code=500, detail="An internal error occurred. Please try again.")


# ── Health ───────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    services = getattr(request.app.state, "services", None)
    return HealthResponse(documents=len(services.index) if services else 0)


# ── Chat ─────────────────────────────────────────────────────────────


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request):
    """Send a message; the reply comes from document QA or the booking flow.

    The state machine call blocks on the LLM and the store, so it is
    offloaded to a worker thread.
    """
    services = _get_services(request)
    try:
        result = await asyncio.to_thread(
            services.conversations.handle_message, body.message.strip(), body.session_id,
        )
    except Exception as exc:
        raise _internal_error(request, "Error processing chat message", exc) from exc
    return ChatResponse(reply=result.reply, session_id=result.session_id, state=result.state)


@router.get("/chat/{session_id}", response_model=HistoryResponse)
async def get_history(session_id: str, request: Request):
    services = _get_services(request)
    try:
        conversation = await asyncio.to_thread(services.conversations.get_history, session_id)
    except Exception as exc:
        raise _internal_error(request, "Error fetching conversation", exc) from exc
    return HistoryResponse(
        session_id=session_id,
        messages=[MessageOut(**m.model_dump()) for m in conversation.messages],
        state=conversation.context.state,
    )


@router.delete("/chat/{session_id}", response_model=OkResponse)
async def clear_history(session_id: str, request: Request):
    services = _get_services(request)
    try:
        await asyncio.to_thread(services.conversations.clear_session, session_id)
    except Exception as exc:
        raise _internal_error(request, "Error clearing conversation", exc) from exc
    return OkResponse()


# ── Documents ────────────────────────────────────────────────────────


@router.post("/documents", response_model=DocumentUploadResponse)
async def upload_document(request: Request, file: UploadFile = File(...)):
    """Upload one PDF, DOCX or TXT file.

    Returns as soon as the document is chunked and keyword-searchable;
    embeddings are computed in the background.
    """
    services = _get_services(request)
    raw = await file.read()
    try:
        document = await asyncio.to_thread(
            services.documents.ingest_upload, raw, file.filename or "",
        )
    except UnsupportedFileError as exc:
        raise HTTPException(status_code=413 if exc.too_large else 400, detail=exc.message) from exc
    except Exception as exc:
        raise _internal_error(request, "Error ingesting document", exc) from exc

    return DocumentUploadResponse(
        id=document.id,
        filename=document.filename,
        kind=document.kind,
        chunk_count=len(document.chunks),
        embedding_status=services.documents.embedding_status(document.id),
    )


@router.get("/documents", response_model=list[DocumentSummary])
async def list_documents(request: Request):
    services = _get_services(request)
    try:
        return await asyncio.to_thread(services.documents.list_documents)
    except Exception as exc:
        raise _internal_error(request, "Error listing documents", exc) from exc


@router.post("/documents/reprocess", response_model=ReprocessResponse)
async def reprocess_documents(request: Request):
    """Embed every chunk that is still missing a vector."""
    services = _get_services(request)
    try:
        count = await asyncio.to_thread(services.documents.reprocess)
    except Exception as exc:
        raise _internal_error(request, "Error reprocessing documents", exc) from exc
    return ReprocessResponse(documents=count)


@router.delete("/documents/{document_id}", response_model=OkResponse)
async def delete_document(document_id: str, request: Request):
    services = _get_services(request)
    try:
        await asyncio.to_thread(services.documents.delete_document, document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except Exception as exc:
        raise _internal_error(request, "Error deleting document", exc) from exc
    return OkResponse()


@router.get("/documents/{document_id}/embedding", response_model=EmbeddingStatusResponse)
async def embedding_status(document_id: str, request: Request):
    services = _get_services(request)
    return EmbeddingStatusResponse(
        document_id=document_id,
        status=services.documents.embedding_status(document_id),
    )


@router.get("/search", response_model=list[SearchResult])
async def search(
    request: Request,
    q: str = Query(..., min_length=1),
    k: int = Query(3, ge=1, le=20),
):
    """Diagnostic endpoint exposing the raw retriever ranking."""
    services = _get_services(request)
    try:
        return await asyncio.to_thread(services.retriever.search, q, k)
    except Exception as exc:
        raise _internal_error(request, "Error searching documents", exc) from exc


# ── Appointments ─────────────────────────────────────────────────────


@router.get("/appointments", response_model=list[Appointment])
async def list_appointments(
    request: Request,
    status: AppointmentStatus | None = None,
    date: str | None = Query(None, description="YYYY-MM-DD"),
):
    services = _get_services(request)
    try:
        return await asyncio.to_thread(
            services.appointments.list_appointments, status, date,
        )
    except Exception as exc:
        raise _internal_error(request, "Error listing appointments", exc) from exc


@router.post("/appointments", response_model=Appointment, status_code=201)
async def create_appointment(body: AppointmentCreate, request: Request):
    services = _get_services(request)
    try:
        return await asyncio.to_thread(
            lambda: services.appointments.create(
                name=body.name,
                email=body.email,
                phone=body.phone,
                date=body.date,
                time_of_day=body.time,
                purpose=body.purpose,
            )
        )
    except AppointmentValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except Exception as exc:
        raise _internal_error(request, "Error creating appointment", exc) from exc


@router.patch("/appointments/{appointment_id}/status", response_model=Appointment)
async def update_appointment_status(
    appointment_id: str, body: AppointmentStatusUpdate, request: Request,
):
    services = _get_services(request)
    try:
        return await asyncio.to_thread(
            services.appointments.update_status, appointment_id, body.status,
        )
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except Exception as exc:
        raise _internal_error(request, "Error updating appointment", exc) from exc


@router.delete("/appointments/{appointment_id}", response_model=OkResponse)
async def delete_appointment(appointment_id: str, request: Request):
    services = _get_services(request)
    try:
        await asyncio.to_thread(services.appointments.delete, appointment_id)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except Exception as exc:
        raise _internal_error(request, "Error deleting appointment", exc) from exc
    return OkResponse()
