"""Centralized configuration for DocDesk Assistant.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/docdesk/<VARIABLE_NAME>``.
Everything else is a plain environment variable with a sensible default.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/docdesk/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /docdesk/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-haiku-4-5")
LLM_TIMEOUT_SECONDS: float = _float_env("LLM_TIMEOUT_SECONDS", 60.0)

# ── Embedding service (OpenAI-compatible /embeddings endpoint) ──────
EMBEDDING_API_KEY: str = _require_env("EMBEDDING_API_KEY")
EMBEDDING_BASE_URL: str = os.getenv("EMBEDDING_BASE_URL", "https://api.openai.com/v1")
EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_BATCH_SIZE: int = _int_env("EMBEDDING_BATCH_SIZE", 3)
EMBEDDING_BATCH_DELAY_SECONDS: float = _float_env("EMBEDDING_BATCH_DELAY_SECONDS", 0.1)
EMBEDDING_WORKERS: int = _int_env("EMBEDDING_WORKERS", 2)
EMBEDDING_RETENTION_SECONDS: float = _float_env("EMBEDDING_RETENTION_SECONDS", 300.0)

# ── Chunking & retrieval ────────────────────────────────────────────
CHUNK_SIZE: int = _int_env("CHUNK_SIZE", 1000)
CHUNK_OVERLAP: int = _int_env("CHUNK_OVERLAP", 200)
SEMANTIC_THRESHOLD: float = _float_env("SEMANTIC_THRESHOLD", 0.3)
KEYWORD_SCORE_DIVISOR: float = _float_env("KEYWORD_SCORE_DIVISOR", 10.0)

# ── Durable store ───────────────────────────────────────────────────
# Unset MONGODB_URL selects the process-local in-memory repository.
MONGODB_URL: str | None = os.getenv("MONGODB_URL") or None
MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "docdesk")

# ── Uploads ─────────────────────────────────────────────────────────
MAX_UPLOAD_BYTES: int = _int_env("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int_env("SERVER_PORT", 8000)
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
