"""
Custom exception hierarchy for the report export service.

Provides a consistent error handling approach across all modules.
"""


class ReportExportError(Exception):
    """
    Base exception for all report export errors.

    All custom exceptions should inherit from this class.
    """

    error_type: str = "error"

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== Lookup Errors ====================

class NotFoundError(ReportExportError):
    """
    A requested record does not exist.
    """
    error_type = "not_found"


class CourseNotFoundError(NotFoundError):
    """Raised when a course id matches no course."""

    def __init__(self, course_id: str):
        super().__init__("Course not found", {'course_id': course_id})
        self.course_id = course_id


class ExportConfigNotFoundError(NotFoundError):
    """Raised when a configuration id matches none of a course's configurations."""

    def __init__(self, course_id: str, config_id: str):
        super().__init__("Export configuration not found", {
            'course_id': course_id,
            'config_id': config_id
        })
        self.course_id = course_id
        self.config_id = config_id


# ==================== Export Errors ====================

class ValidationFailedError(ReportExportError):
    """Raised when an export cannot run as configured (disabled, no recipients...)."""
    error_type = "validation"


class EmptyResultError(ReportExportError):
    """Raised when no participant matches the course and filter."""
    error_type = "empty_result"


class RateLimitedError(ReportExportError):
    """
    Raised when a course exceeded its manual export quota.

    Attributes:
        limit: Maximum manual exports per window
        window_seconds: Length of the trailing window
    """
    error_type = "rate_limited"

    def __init__(self, message: str, limit: int = 0, window_seconds: int = 0):
        super().__init__(message, {
            'limit': limit,
            'window_seconds': window_seconds
        })
        self.limit = limit
        self.window_seconds = window_seconds


class DeliveryError(ReportExportError):
    """Raised when the mail transport rejects or fails to send a report."""
    error_type = "delivery"


class RenderError(ReportExportError):
    """Raised when the PDF report cannot be produced."""
    error_type = "render"


# ==================== Storage Errors ====================

class PersistenceError(ReportExportError):
    """
    Raised when the backing store is unreachable or a query fails.
    """
    error_type = "persistence"
