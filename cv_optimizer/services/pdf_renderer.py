"""Render a StructuredResume to a paginated PDF.

Layout is done by hand on a reportlab canvas: every text block is wrapped to
the printable width and emitted line by line, and the page-break check runs
before each line so long highlight lists flow onto the next page.
"""

import logging
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services.errors import ExportError

logger = logging.getLogger(__name__)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

MARGIN = 20 * mm
BOTTOM_MARGIN = 30 * mm
LINE_FACTOR = 0.4 * mm  # line height per point of font size
BLOCK_GAP = 5 * mm
HIGHLIGHT_LINE_HEIGHT = 5 * mm
BULLET_INDENT = 5 * mm
HIGHLIGHT_INDENT = 10 * mm

NAME_SIZE = 20
HEADING_SIZE = 14
ENTRY_SIZE = 12
BODY_SIZE = 11
SMALL_SIZE = 10

BULLET = "•"
SEPARATOR = f" {BULLET} "


def _safe(text: str) -> str:
    """Standard PDF fonts only cover the Windows-1252 repertoire."""
    return text.encode("cp1252", errors="replace").decode("cp1252")


class _PdfWriter:
    """Vertical-cursor text flow over a reportlab canvas."""

    def __init__(self, buffer: BytesIO, compress: bool = True):
        self.page_width, self.page_height = A4
        self.canvas = canvas.Canvas(buffer, pagesize=A4, pageCompression=1 if compress else 0)
        self.max_width = self.page_width - 2 * MARGIN
        self.y = MARGIN  # distance from the top edge
        self.pages = 1

    def _ensure_room(self) -> None:
        if self.y > self.page_height - BOTTOM_MARGIN:
            self.canvas.showPage()
            self.pages += 1
            self.y = MARGIN

    def _draw(self, text: str, x: float, font: str, size: float) -> None:
        self.canvas.setFont(font, size)
        self.canvas.drawString(x, self.page_height - self.y, text)

    def text(self, text: str, size: float, bold: bool = False) -> None:
        """Wrapped block followed by the standard block gap."""
        font = FONT_BOLD if bold else FONT
        for line in simpleSplit(_safe(text), font, size, self.max_width):
            self._ensure_room()
            self._draw(line, MARGIN, font, size)
            self.y += size * LINE_FACTOR
        self.y += BLOCK_GAP

    def bullet(self, text: str, size: float = SMALL_SIZE) -> None:
        """Highlight line: bullet glyph plus hanging-indented wrapped text."""
        lines = simpleSplit(_safe(text), FONT, size, self.max_width - HIGHLIGHT_INDENT)
        for index, line in enumerate(lines):
            self._ensure_room()
            if index == 0:
                self._draw(BULLET, MARGIN + BULLET_INDENT, FONT, size)
            self._draw(line, MARGIN + HIGHLIGHT_INDENT, FONT, size)
            self.y += HIGHLIGHT_LINE_HEIGHT

    def gap(self, amount: float = BLOCK_GAP) -> None:
        self.y += amount

    def save(self) -> None:
        self.canvas.save()


def _write_resume(writer: _PdfWriter, resume: StructuredResume) -> None:
    header = resume.header
    if header and (header.name or header.contact):
        writer.text(header.name, NAME_SIZE, bold=True)
        if header.contact:
            writer.text(header.contact, BODY_SIZE)
        writer.gap(10 * mm)

    if resume.summary:
        writer.text("PROFESSIONAL SUMMARY", HEADING_SIZE, bold=True)
        writer.text(resume.summary, BODY_SIZE)
        writer.gap()

    if resume.skills:
        writer.text("KEY SKILLS", HEADING_SIZE, bold=True)
        writer.text(SEPARATOR.join(resume.skills), BODY_SIZE)
        writer.gap()

    if resume.experience:
        writer.text("PROFESSIONAL EXPERIENCE", HEADING_SIZE, bold=True)
        for exp in resume.experience:
            title_line = " | ".join(part for part in (exp.title, exp.company) if part)
            if title_line:
                writer.text(title_line, ENTRY_SIZE, bold=True)
            if exp.period:
                writer.text(exp.period, SMALL_SIZE)
            for highlight in exp.highlights:
                writer.bullet(highlight)
            writer.gap()

    if resume.education:
        writer.text("EDUCATION", HEADING_SIZE, bold=True)
        for edu in resume.education:
            if edu.degree:
                writer.text(edu.degree, ENTRY_SIZE, bold=True)
            details = SEPARATOR.join(part for part in (edu.institution, edu.year) if part)
            if details:
                writer.text(details, SMALL_SIZE)
            writer.gap()


def render_pdf(resume: StructuredResume, compress: bool = True) -> bytes:
    """Serialize ``resume`` to PDF bytes. Raises ExportError on failure."""
    buffer = BytesIO()
    try:
        writer = _PdfWriter(buffer, compress=compress)
        _write_resume(writer, resume)
        writer.save()
    except Exception as e:
        logger.exception("PDF generation error")
        raise ExportError("pdf", str(e)) from e

    logger.debug("Rendered PDF: %d page(s)", writer.pages)
    return buffer.getvalue()
