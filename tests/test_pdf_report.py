"""
Tests for the participation report PDF.
"""

import fitz
import pytest
from datetime import date, datetime

from core.models import AttemptRecord
from export.pdf_report import ParticipationReportRenderer, paginate, report_title


def make_participants(count):
    return [
        AttemptRecord(
            first_name=f"First{i}",
            last_name=f"Last{i}",
            institution="North",
            service="Nursing",
            score=i % 17,
            total_questions=16,
            created_at=datetime(2026, 10, 12),
            course_id="c1"
        )
        for i in range(count)
    ]


def test_paginate_fixed_capacity():
    """Test 200 rows at 30 per page make 7 pages, nothing lost or repeated."""
    participants = make_participants(200)

    pages = paginate(participants, 30, 30)

    assert len(pages) == 7
    assert [len(p) for p in pages] == [30] * 6 + [20]
    flattened = [r for page in pages for r in page]
    assert flattened == participants


def test_paginate_empty_has_one_page():
    assert paginate([], 30, 30) == [[]]


def test_paginate_rejects_zero_capacity():
    with pytest.raises(ValueError):
        paginate(make_participants(3), 0, 30)


def test_page_capacities():
    """Test the first page holds fewer rows because of the heading."""
    first, other = ParticipationReportRenderer().page_capacities()
    assert first == 34
    assert other == 38

    assert ParticipationReportRenderer(rows_per_page=30).page_capacities() == (30, 30)


def test_render_page_count_and_content():
    """Test rendered PDF reopens with the expected pages and text."""
    renderer = ParticipationReportRenderer(rows_per_page=30)

    pdf_bytes = renderer.render("Hand hygiene", make_participants(200), generated_on=date(2026, 10, 19))

    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        assert doc.page_count == 7
        first_page = doc[0].get_text()
        assert "Hand hygiene" in first_page
        assert "Participants: 200" in first_page
        assert "19/10/2026" in first_page
        assert "First0" in first_page
        assert "Page 1/7" in first_page

        last_page = doc[6].get_text()
        assert "First199" in last_page
        assert "Institution" in last_page  # header repeated


def test_render_title_and_names_outside_latin1():
    """Test the title dash and accented or non-Latin names survive a round trip through the PDF."""
    participants = [
        AttemptRecord(
            first_name="Łukasz",
            last_name="Ørsted",
            institution="Hôpital Nord",
            service="Réanimation",
            score=15,
            total_questions=16,
            created_at=datetime(2026, 10, 12),
            course_id="c1"
        ),
        AttemptRecord(
            first_name="Ελένη",
            last_name="Şahin",
            institution="Hôpital Nord",
            score=9,
            created_at=datetime(2026, 10, 13),
            course_id="c1"
        ),
    ]

    pdf_bytes = ParticipationReportRenderer().render(
        "Hygiène", participants, institution="Hôpital Nord", generated_on=date(2026, 10, 19)
    )

    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        text = doc[0].get_text()
        assert "Participation report — Hygiène (Hôpital Nord)" in text
        for name in ("Łukasz", "Ørsted", "Réanimation", "Ελένη", "Şahin"):
            assert name in text


def test_render_empty_report():
    """Test an empty participant list still renders a single page."""
    pdf_bytes = ParticipationReportRenderer().render("Empty course", [])

    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        assert doc.page_count == 1


def test_row_cells_truncation_and_score():
    """Test long text is truncated and the score shows its total."""
    record = AttemptRecord(
        first_name="Maximilianus-Johannes",
        last_name="Lee",
        institution="University Hospital of the North",
        service="Intensive care unit",
        score=12.5,
        total_questions=None,
        created_at=datetime(2026, 3, 4),
        course_id="c1"
    )

    cells = ParticipationReportRenderer.row_cells(record)

    assert cells[0] == "Maximilianus"
    assert cells[2] == "University Hosp"
    assert cells[3] == "Intensive ca"
    assert cells[4] == "12.5/16"
    assert cells[5] == "04/03/2026"


def test_report_title():
    assert report_title("form_1", "North") == "Participation report — form_1 (North)"
    assert report_title("Hand hygiene") == "Participation report — Hand hygiene"
