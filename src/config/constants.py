"""
Constants and configuration values for the report export pipeline.

Defines limits, time windows, and PDF layout values.
"""

from typing import Final

# Rate limiting (manual exports only)
MAX_MANUAL_EXPORTS_PER_HOUR: Final[int] = 10
RATE_LIMIT_WINDOW_SECONDS: Final[int] = 60 * 60

# Scheduler coordination
LOCAL_LOCK_TTL_SECONDS: Final[float] = 120.0  # In-process lock lifetime
SCHEDULED_DEDUP_WINDOW_SECONDS: Final[int] = 5 * 60  # Export Log lookback

# Legacy single-config defaults
DEFAULT_EXPORT_DAY: Final[int] = 1  # Monday (0 = Sunday)
DEFAULT_EXPORT_HOUR: Final[int] = 8
DEFAULT_EXPORT_MINUTE: Final[int] = 0
LEGACY_CONFIG_PREFIX: Final[str] = "legacy"

# Attempt storage
DEFAULT_ATTEMPT_COLLECTION: Final[str] = "scores"
DEFAULT_TOTAL_QUESTIONS: Final[int] = 16

# PDF layout (points, A4)
PAGE_WIDTH: Final[float] = 595
PAGE_HEIGHT: Final[float] = 842
PAGE_MARGIN: Final[float] = 50
PAGE_BOTTOM_RESERVE: Final[float] = 50  # New page when y drops below margin + reserve

TITLE_FONT_SIZE: Final[float] = 14
INFO_FONT_SIZE: Final[float] = 10
HEADER_FONT_SIZE: Final[float] = 9
ROW_FONT_SIZE: Final[float] = 8
ROW_HEIGHT: Final[float] = 18

TABLE_HEADERS: Final[tuple] = ("First name", "Last name", "Institution", "Service", "Score", "Date")
COLUMN_WIDTHS: Final[tuple] = (80, 80, 100, 80, 50, 70)
TEXT_COLUMN_BUDGETS: Final[tuple] = (12, 12, 15, 12)  # first, last, institution, service

HEADER_FILL_COLOR: Final[tuple] = (0.137, 0.545, 0.137)  # Forest green
HEADER_TEXT_COLOR: Final[tuple] = (1, 1, 1)
SEPARATOR_COLOR: Final[tuple] = (0.8, 0.8, 0.8)

# Dates
REPORT_DATE_FORMAT: Final[str] = "%d/%m/%Y"
PDF_CONTENT_TYPE: Final[str] = "application/pdf"

# Export log listing
DEFAULT_LOG_LIMIT: Final[int] = 50
