import re
from datetime import date, datetime, timezone

import pytest

from cv_optimizer.services.export import ExportFormat, MEDIA_TYPES, export_filename, render
from cv_optimizer.services.session import SessionContext, new_session_id

DAY = date(2026, 3, 14)


@pytest.mark.parametrize(
    "role, fmt, expected",
    [
        ("Backend Developer", ExportFormat.PDF, "optimized-cv-Backend-Developer-2026-03-14.pdf"),
        ("Senior  Data\tEngineer", ExportFormat.DOCX, "optimized-cv-Senior-Data-Engineer-2026-03-14.docx"),
        ("", ExportFormat.PDF, "optimized-cv-CV-2026-03-14.pdf"),
        (None, ExportFormat.DOCX, "optimized-cv-CV-2026-03-14.docx"),
        ("  ", ExportFormat.PDF, "optimized-cv-CV-2026-03-14.pdf"),
    ],
)
def test_export_filename(role, fmt, expected):
    assert export_filename(role, fmt, DAY) == expected


def test_export_filename_accepts_datetime():
    created = datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc)
    assert export_filename("QA", ExportFormat.PDF, created) == "optimized-cv-QA-2026-03-14.pdf"


def test_export_filename_defaults_to_today():
    assert export_filename("QA", ExportFormat.PDF).endswith(f"-{date.today().isoformat()}.pdf")


def test_render_dispatches_by_format(sample_resume):
    assert render(sample_resume, ExportFormat.PDF).startswith(b"%PDF")
    assert render(sample_resume, ExportFormat.DOCX)[:2] == b"PK"
    assert set(MEDIA_TYPES) == set(ExportFormat)


def test_session_ids():
    first, second = new_session_id(), new_session_id()
    assert re.fullmatch(r"session_\d{13}_[0-9a-z]{9}", first)
    assert first != second


def test_session_context():
    anonymous = SessionContext.new()
    assert anonymous.user_id is None
    assert not anonymous.is_authenticated
    assert SessionContext("s", user_id="u").is_authenticated
