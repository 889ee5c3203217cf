"""
Participation report rendering.

Draws the deduplicated participant list of a course as a paginated table
on A4 pages, using PyMuPDF.
"""

import fitz  # PyMuPDF
from datetime import date
from typing import Dict, List, Optional, Sequence

from core.exceptions import RenderError
from core.models import AttemptRecord
from config.constants import (
    PAGE_WIDTH, PAGE_HEIGHT, PAGE_MARGIN, PAGE_BOTTOM_RESERVE,
    TITLE_FONT_SIZE, INFO_FONT_SIZE, HEADER_FONT_SIZE, ROW_FONT_SIZE, ROW_HEIGHT,
    TABLE_HEADERS, COLUMN_WIDTHS, TEXT_COLUMN_BUDGETS,
    HEADER_FILL_COLOR, HEADER_TEXT_COLOR, SEPARATOR_COLOR,
    REPORT_DATE_FORMAT, DEFAULT_TOTAL_QUESTIONS,
)

# Noto Sans (pymupdf-fonts), embedded in every page
FONT_REGULAR = "notos"
FONT_BOLD = "notosbo"

# Vertical advance after each heading line
TITLE_ADVANCE = 25
PARTICIPANTS_ADVANCE = 15
DATE_ADVANCE = 30
CELL_PADDING = 5
TEXT_BASELINE_OFFSET = 12


def format_report_date(value: date) -> str:
    """Format a date as DD/MM/YYYY."""
    return value.strftime(REPORT_DATE_FORMAT)


def report_title(course_name: str, institution: Optional[str] = None) -> str:
    title = f"Participation report — {course_name}"
    if institution:
        title = f"{title} ({institution})"
    return title


def paginate(
    participants: Sequence[AttemptRecord],
    first_page_rows: int,
    other_page_rows: int
) -> List[List[AttemptRecord]]:
    """
    Split rows into pages.

    Every participant lands on exactly one page, in input order. An empty
    list still yields one (empty) page so the report has its heading.
    """
    if first_page_rows < 1 or other_page_rows < 1:
        raise ValueError("Page capacity must be at least one row")

    pages = [list(participants[:first_page_rows])]
    index = first_page_rows
    while index < len(participants):
        pages.append(list(participants[index:index + other_page_rows]))
        index += other_page_rows
    return pages


class ParticipationReportRenderer:
    """
    Renders participation reports as PDF bytes.

    Features:
    - Centered title, participant count and generation date
    - Fixed-width table with a filled header row, repeated on every page
    - Text fields truncated to fit their column
    - Page numbers in the footer
    """

    def __init__(self, rows_per_page: Optional[int] = None):
        """
        Initialize renderer.

        Args:
            rows_per_page: Fixed page capacity. When None, pages hold as many
                rows as fit above the bottom reserve.
        """
        self.rows_per_page = rows_per_page
        self._fonts: Dict[str, fitz.Font] = {}

    # ==================== LAYOUT ====================

    @staticmethod
    def _rows_that_fit(table_top: float) -> int:
        """Rows drawable below a header row starting at table_top."""
        y = table_top + ROW_HEIGHT
        limit = PAGE_HEIGHT - (PAGE_MARGIN + PAGE_BOTTOM_RESERVE)
        rows = 0
        while y <= limit:
            rows += 1
            y += ROW_HEIGHT
        return rows

    @property
    def first_page_table_top(self) -> float:
        return PAGE_MARGIN + TITLE_ADVANCE + PARTICIPANTS_ADVANCE + DATE_ADVANCE

    def page_capacities(self) -> tuple:
        """(rows on the first page, rows on following pages)."""
        first = self._rows_that_fit(self.first_page_table_top)
        other = self._rows_that_fit(PAGE_MARGIN)
        if self.rows_per_page:
            first = min(first, self.rows_per_page)
            other = min(other, self.rows_per_page)
        return first, other

    # ==================== RENDERING ====================

    def render(
        self,
        course_name: str,
        participants: Sequence[AttemptRecord],
        institution: Optional[str] = None,
        generated_on: Optional[date] = None
    ) -> bytes:
        """
        Render the report.

        Args:
            course_name: Course display name
            participants: Deduplicated rows, drawn in the given order
            institution: Sub-audience shown in the title, if filtered
            generated_on: Date printed in the heading (default: today)

        Returns:
            PDF document bytes

        Raises:
            RenderError: PyMuPDF failed to build the document
        """
        generated_on = generated_on or date.today()
        pages = paginate(participants, *self.page_capacities())

        doc = None
        try:
            doc = fitz.open()

            for page_index, rows in enumerate(pages):
                page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)  # A4 size
                self._register_fonts(page)

                if page_index == 0:
                    y = self._draw_heading(page, course_name, len(participants), institution, generated_on)
                else:
                    y = PAGE_MARGIN

                y = self._draw_table_header(page, y)
                for record in rows:
                    y = self._draw_row(page, y, record)

                self._draw_footer(page, page_index + 1, len(pages))

            return doc.tobytes()
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to render report for {course_name}: {e}") from e
        finally:
            if doc is not None:
                doc.close()

    def _font(self, name: str) -> fitz.Font:
        if name not in self._fonts:
            self._fonts[name] = fitz.Font(name)
        return self._fonts[name]

    def _register_fonts(self, page: fitz.Page) -> None:
        for name in (FONT_REGULAR, FONT_BOLD):
            page.insert_font(fontname=name, fontbuffer=self._font(name).buffer)

    def _draw_heading(
        self,
        page: fitz.Page,
        course_name: str,
        participant_count: int,
        institution: Optional[str],
        generated_on: date
    ) -> float:
        y = PAGE_MARGIN
        self._draw_centered(page, report_title(course_name, institution), y, FONT_BOLD, TITLE_FONT_SIZE)
        y += TITLE_ADVANCE
        self._draw_centered(page, f"Participants: {participant_count}", y, FONT_REGULAR, INFO_FONT_SIZE)
        y += PARTICIPANTS_ADVANCE
        self._draw_centered(page, f"Generated on {format_report_date(generated_on)}", y, FONT_REGULAR, INFO_FONT_SIZE)
        return y + DATE_ADVANCE

    def _draw_table_header(self, page: fitz.Page, y: float) -> float:
        page.draw_rect(
            fitz.Rect(PAGE_MARGIN, y, PAGE_MARGIN + sum(COLUMN_WIDTHS), y + ROW_HEIGHT),
            color=None,
            fill=HEADER_FILL_COLOR
        )
        self._draw_cells(page, y, TABLE_HEADERS, FONT_BOLD, HEADER_FONT_SIZE, HEADER_TEXT_COLOR)
        return y + ROW_HEIGHT

    def _draw_row(self, page: fitz.Page, y: float, record: AttemptRecord) -> float:
        self._draw_cells(page, y, self.row_cells(record), FONT_REGULAR, ROW_FONT_SIZE, (0, 0, 0))

        # Separator line
        bottom = y + ROW_HEIGHT
        page.draw_line(
            fitz.Point(PAGE_MARGIN, bottom),
            fitz.Point(PAGE_MARGIN + sum(COLUMN_WIDTHS), bottom),
            color=SEPARATOR_COLOR,
            width=0.5
        )
        return bottom

    def _draw_footer(self, page: fitz.Page, number: int, total: int) -> None:
        self._draw_centered(
            page, f"Page {number}/{total}", PAGE_HEIGHT - PAGE_MARGIN / 2,
            FONT_REGULAR, ROW_FONT_SIZE, color=(0.5, 0.5, 0.5)
        )

    @staticmethod
    def row_cells(record: AttemptRecord) -> List[str]:
        """Cell texts of one participant row."""
        first_budget, last_budget, institution_budget, service_budget = TEXT_COLUMN_BUDGETS
        total = record.total_questions or DEFAULT_TOTAL_QUESTIONS
        return [
            (record.first_name or "")[:first_budget],
            (record.last_name or "")[:last_budget],
            (record.institution or "")[:institution_budget],
            (record.service or "")[:service_budget],
            f"{record.score:g}/{total}",
            format_report_date(record.created_at),
        ]

    @staticmethod
    def _draw_cells(page: fitz.Page, y: float, cells: Sequence[str], font: str, size: float, color: tuple) -> None:
        x = PAGE_MARGIN
        for text, width in zip(cells, COLUMN_WIDTHS):
            page.insert_text(
                fitz.Point(x + CELL_PADDING, y + TEXT_BASELINE_OFFSET),
                text,
                fontname=font,
                fontsize=size,
                color=color
            )
            x += width

    def _draw_centered(
        self,
        page: fitz.Page,
        text: str,
        y: float,
        font: str,
        size: float,
        color: tuple = (0, 0, 0)
    ) -> None:
        width = self._font(font).text_length(text, fontsize=size)
        page.insert_text(
            fitz.Point((PAGE_WIDTH - width) / 2, y),
            text,
            fontname=font,
            fontsize=size,
            color=color
        )
