"""Exception hierarchy for DocDesk Assistant.

Usage:
    from docdesk.exceptions import RepositoryError
    raise RepositoryError("Failed to save appointment", details={"session_id": sid})
"""

from __future__ import annotations

from typing import Any


class DocDeskError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class EmbeddingServiceError(DocDeskError):
    """Raised when the external embedding service call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, details={"status_code": status_code} if status_code else None)


class RepositoryError(DocDeskError):
    """Raised when the durable store rejects or fails an operation."""


class DocumentNotFoundError(DocDeskError):
    """Raised when a document id is unknown."""


class AppointmentNotFoundError(DocDeskError):
    """Raised when an appointment id is unknown."""


class UnsupportedFileError(DocDeskError):
    """Raised at the upload boundary for a bad file kind or size."""

    def __init__(self, message: str, *, too_large: bool = False):
        self.too_large = too_large
        super().__init__(message)
