"""
Core module for the report export pipeline.

Exports domain models and the exception hierarchy for easy access.
"""

from core.models import (
    TriggerSource,
    ExportContext,
    ExportConfiguration,
    Course,
    AttemptRecord,
    ExportLogEntry,
    ExportResult,
    export_label,
)

from core.exceptions import (
    ReportExportError,
    NotFoundError,
    CourseNotFoundError,
    ExportConfigNotFoundError,
    ValidationFailedError,
    EmptyResultError,
    RateLimitedError,
    DeliveryError,
    RenderError,
    PersistenceError,
)

__all__ = [
    # Models
    'TriggerSource',
    'ExportContext',
    'ExportConfiguration',
    'Course',
    'AttemptRecord',
    'ExportLogEntry',
    'ExportResult',
    'export_label',
    # Exceptions
    'ReportExportError',
    'NotFoundError',
    'CourseNotFoundError',
    'ExportConfigNotFoundError',
    'ValidationFailedError',
    'EmptyResultError',
    'RateLimitedError',
    'DeliveryError',
    'RenderError',
    'PersistenceError',
]
