"""
Export module for participation reports.

- Score aggregation with participant deduplication
- Paginated PDF table rendering
"""

from export.aggregator import ScoreAggregator, remove_duplicates_keep_highest
from export.pdf_report import ParticipationReportRenderer, paginate, format_report_date

__all__ = [
    'ScoreAggregator',
    'remove_duplicates_keep_highest',
    'ParticipationReportRenderer',
    'paginate',
    'format_report_date',
]
