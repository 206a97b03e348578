"""Plain-text extraction for uploaded PDF, DOCX and TXT files.

Extraction degrades instead of failing: a PDF or DOCX that yields (almost)
no text or cannot be parsed at all produces a diagnostic placeholder so that
the document can still be chunked and stored.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docdesk.models import FileKind

logger = logging.getLogger(__name__)

MIN_PDF_TEXT_LENGTH = 10

_EMPTY_PDF_TEMPLATE = """PDF Document: {filename}

This PDF was processed but contains little or no extractable text. It may be:
- a scanned (image-based) PDF
- a PDF made mostly of images or graphics
- an encrypted or protected PDF

For better results, convert it to DOCX or run OCR on it first."""

_CORRUPT_PDF_TEMPLATE = """PDF Document: {filename}

Error: this PDF appears to be corrupted or in an unsupported format.

Please try re-uploading it, converting it to DOCX or TXT, or making sure it
is not password-protected."""

_EMPTY_DOCX_TEMPLATE = """DOCX Document: {filename}

This document was processed but contains no text paragraphs or tables. It
may consist only of images or embedded objects."""

_CORRUPT_DOCX_TEMPLATE = """DOCX Document: {filename}

Error: this DOCX appears to be corrupted or is not a Word document.

Please try re-uploading it or converting it to PDF or TXT."""


def extract_pdf(raw: bytes, filename: str) -> str:
    try:
        reader = PdfReader(io.BytesIO(raw))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError, OSError) as exc:
        logger.warning("Could not parse PDF %s: %s", filename, exc)
        return _CORRUPT_PDF_TEMPLATE.format(filename=filename)

    text = re.sub(r"[ \t\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text).strip()
    if len(text) < MIN_PDF_TEXT_LENGTH:
        logger.info("PDF %s has no usable text layer", filename)
        return _EMPTY_PDF_TEMPLATE.format(filename=filename)
    return text


def _table_text(table) -> str:
    lines = []
    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]
        if any(cells):
            lines.append(" | ".join(cells))
    return "\n".join(lines)


def extract_docx(raw: bytes, filename: str) -> str:
    """Paragraphs first, then tables (one `` | ``-joined line per row)."""
    try:
        doc = DocxDocument(io.BytesIO(raw))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        logger.warning("Could not parse DOCX %s: %s", filename, exc)
        return _CORRUPT_DOCX_TEMPLATE.format(filename=filename)

    parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    parts.extend(t for t in (_table_text(table) for table in doc.tables) if t)
    if not parts:
        logger.info("DOCX %s has no text", filename)
        return _EMPTY_DOCX_TEMPLATE.format(filename=filename)
    return "\n\n".join(parts)


def extract_txt(raw: bytes, filename: str) -> str:
    return raw.decode("utf-8", errors="replace")


_EXTRACTORS = {
    FileKind.PDF: extract_pdf,
    FileKind.DOCX: extract_docx,
    FileKind.TXT: extract_txt,
}


def extract_text(raw: bytes, kind: FileKind, filename: str) -> str:
    return _EXTRACTORS[kind](raw, filename)
