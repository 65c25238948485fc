"""Render a StructuredResume to a DOCX package with python-docx.

Section order and the skip-if-empty rule mirror the PDF renderer. Word
handles reflow, so only the spacing after each paragraph type is fixed.
"""

import logging
from io import BytesIO

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, Twips

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services.errors import ExportError

logger = logging.getLogger(__name__)

BULLET = "•"
SEPARATOR = f" {BULLET} "

# Spacing after each block type
SPACE_AFTER_NAME = Twips(200)
SPACE_AFTER_CONTACT = Twips(400)
SPACE_AFTER_HEADING = Twips(200)
SPACE_AFTER_SECTION_BODY = Twips(400)
SPACE_AFTER_ENTRY_TITLE = Twips(100)
SPACE_AFTER_PERIOD = Twips(200)
SPACE_AFTER_HIGHLIGHT = Twips(150)
SPACE_AFTER_ENTRY = Twips(300)
HIGHLIGHT_INDENT = Twips(400)


def _paragraph(doc, text: str = "", size: float | None = None, bold: bool = False,
               italic: bool = False, space_after=None, center: bool = False):
    p = doc.add_paragraph()
    if text:
        run = p.add_run(text)
        run.bold = bold
        run.italic = italic
        if size:
            run.font.size = Pt(size)
    if center:
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    if space_after is not None:
        p.paragraph_format.space_after = space_after
    return p


def _heading(doc, text: str):
    p = doc.add_heading(level=1)
    run = p.add_run(text)
    run.bold = True
    run.font.size = Pt(14)
    p.paragraph_format.space_after = SPACE_AFTER_HEADING
    return p


def _highlight(doc, text: str):
    p = doc.add_paragraph()
    marker = p.add_run(f"{BULLET} ")
    marker.bold = True
    body = p.add_run(text)
    body.font.size = Pt(11)
    p.paragraph_format.left_indent = HIGHLIGHT_INDENT
    p.paragraph_format.space_after = SPACE_AFTER_HIGHLIGHT
    return p


def build_document(resume: StructuredResume):
    """Assemble the python-docx Document for ``resume``."""
    doc = Document()

    header = resume.header
    if header and (header.name or header.contact):
        _paragraph(doc, header.name, size=16, bold=True, center=True, space_after=SPACE_AFTER_NAME)
        if header.contact:
            _paragraph(doc, header.contact, size=11, center=True, space_after=SPACE_AFTER_CONTACT)

    if resume.summary:
        _heading(doc, "PROFESSIONAL SUMMARY")
        _paragraph(doc, resume.summary, size=11, space_after=SPACE_AFTER_SECTION_BODY)

    if resume.skills:
        _heading(doc, "KEY SKILLS")
        _paragraph(doc, SEPARATOR.join(resume.skills), size=11, space_after=SPACE_AFTER_SECTION_BODY)

    if resume.experience:
        _heading(doc, "PROFESSIONAL EXPERIENCE")
        for exp in resume.experience:
            title_line = " | ".join(part for part in (exp.title, exp.company) if part)
            if title_line:
                _paragraph(doc, title_line, size=12, bold=True, space_after=SPACE_AFTER_ENTRY_TITLE)
            if exp.period:
                _paragraph(doc, exp.period, size=10, italic=True, space_after=SPACE_AFTER_PERIOD)
            for highlight in exp.highlights:
                _highlight(doc, highlight)
            _paragraph(doc, space_after=SPACE_AFTER_ENTRY)

    if resume.education:
        _heading(doc, "EDUCATION")
        for edu in resume.education:
            if edu.degree:
                _paragraph(doc, edu.degree, size=12, bold=True, space_after=SPACE_AFTER_ENTRY_TITLE)
            details = SEPARATOR.join(part for part in (edu.institution, edu.year) if part)
            if details:
                _paragraph(doc, details, size=10, space_after=SPACE_AFTER_ENTRY)

    return doc


def render_docx(resume: StructuredResume) -> bytes:
    """Serialize ``resume`` to DOCX bytes. Raises ExportError on failure."""
    try:
        doc = build_document(resume)
        buffer = BytesIO()
        doc.save(buffer)
    except Exception as e:
        logger.exception("DOCX generation error")
        raise ExportError("docx", str(e)) from e
    return buffer.getvalue()
