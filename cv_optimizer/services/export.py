"""Document export: format dispatch and download file naming."""

import re
from datetime import date, datetime
from enum import Enum

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services.docx_renderer import render_docx
from cv_optimizer.services.pdf_renderer import render_pdf

DEFAULT_ROLE = "CV"


class ExportFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"


MEDIA_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def export_filename(job_role: str | None, fmt: ExportFormat, on: date | datetime | None = None) -> str:
    """``optimized-cv-<role-with-hyphens>-<YYYY-MM-DD>.<ext>``."""
    role = (job_role or "").strip() or DEFAULT_ROLE
    day = on or date.today()
    if isinstance(day, datetime):
        day = day.date()
    slug = re.sub(r"\s+", "-", role)
    return f"optimized-cv-{slug}-{day.isoformat()}.{fmt.value}"


def render(resume: StructuredResume, fmt: ExportFormat) -> bytes:
    if fmt is ExportFormat.PDF:
        return render_pdf(resume)
    return render_docx(resume)
