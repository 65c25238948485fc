"""Decode uploaded resumes (PDF, DOCX, plain text) into plain text."""

import io
import logging
from enum import Enum

import pdfplumber
from docx import Document

from cv_optimizer.services.errors import (
    ExtractionError,
    FileTooLargeError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

PDF_MEDIA_TYPES = frozenset({"application/pdf"})
DOCX_MEDIA_TYPES = frozenset({
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})
TEXT_MEDIA_TYPES = frozenset({"text/plain"})


class FileKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


def detect_kind(filename: str | None, content_type: str | None = None) -> FileKind:
    """Resolve the file variant from its declared media type or extension."""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    name = (filename or "").lower()

    if media_type in PDF_MEDIA_TYPES or name.endswith(".pdf"):
        return FileKind.PDF
    if media_type in DOCX_MEDIA_TYPES or name.endswith(".docx"):
        return FileKind.DOCX
    if media_type in TEXT_MEDIA_TYPES or name.endswith(".txt"):
        return FileKind.TEXT
    return FileKind.UNSUPPORTED


def extract_text_pdf(pdf_bytes: bytes) -> str:
    """Extract all text from a PDF file, one page per line block."""
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages).strip()


def extract_text_docx(docx_bytes: bytes) -> str:
    """Extract all text from a DOCX file."""
    doc = Document(io.BytesIO(docx_bytes))
    return "\n".join(p.text for p in doc.paragraphs).strip()


def extract_text_plain(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace").strip()


def check_size(size: int, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)


_DECODERS = {
    FileKind.PDF: extract_text_pdf,
    FileKind.DOCX: extract_text_docx,
    FileKind.TEXT: extract_text_plain,
}


def extract(
    data: bytes,
    filename: str | None = None,
    content_type: str | None = None,
    size: int | None = None,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> tuple[FileKind, str]:
    """Return (kind, text) for an uploaded file.

    ``size`` is the declared size; when given it is checked before the body
    is looked at, otherwise the byte length is used.
    """
    check_size(size if size is not None else len(data), max_bytes)

    kind = detect_kind(filename, content_type)
    if kind is FileKind.UNSUPPORTED:
        raise UnsupportedFormatError(filename)

    try:
        text = _DECODERS[kind](data)
    except Exception as e:
        logger.error("%s parsing error for %s: %s", kind.value.upper(), filename, e)
        raise ExtractionError(f"Could not parse {kind.value.upper()} file") from e

    if not text:
        raise ExtractionError("No text could be extracted from this file.")
    return kind, text
