"""
Services module for business logic.

This module contains the export executor, the mail delivery channel and
the factory wiring them, reused across the API and CLI.
"""

from services.delivery import ReportMailer
from services.export_service import ExportExecutor, ManualExportRateLimiter, RateLimitStatus
from services.factory import create_export_executor, create_export_scheduler

__all__ = [
    "ReportMailer",
    "ExportExecutor",
    "ManualExportRateLimiter",
    "RateLimitStatus",
    "create_export_executor",
    "create_export_scheduler",
]
