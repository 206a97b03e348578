"""FastAPI server for DocDesk Assistant.

Run with:
    uvicorn docdesk.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from docdesk.api.routes import router
from docdesk.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from docdesk.services.container import build_services

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the service graph once, load the document index and queue
    embedding for anything left un-embedded by a previous run."""
    logger.info("Building services…")
    services = build_services()
    try:
        services.index.reload()
        queued = services.documents.resume_pending()
        logger.info("Index ready: %d documents, %d queued for embedding", len(services.index), queued)
    except Exception:
        logger.exception("Initial index load failed; starting with an empty index")
    application.state.services = services
    yield
    services.close()
    application.state.services = None


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="DocDesk Assistant",
    description=(
        "Document question answering with retrieval-augmented generation "
        "and in-chat appointment booking."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (client-supplied or generated) to every request
    and echo it in the ``X-Request-ID`` response header."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {
        "service": "DocDesk Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting DocDesk API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "docdesk.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
