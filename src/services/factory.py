"""
Factory for the export pipeline objects.

Assembles stores, renderer, mailer, executor and scheduler from settings so
the API, the CLI and the tests wire them the same way.
"""

from typing import TYPE_CHECKING, Callable, Optional

from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from db.database import SessionLocal
from export.aggregator import ScoreAggregator
from export.pdf_report import ParticipationReportRenderer
from services.delivery import ReportMailer
from services.export_service import ExportExecutor
from storage.attempt_store import AttemptStore
from storage.course_store import CourseStore
from storage.export_log_store import ExportLogStore
from utils.metrics import MetricsCollector

if TYPE_CHECKING:
    from scheduling.scheduler import ExportScheduler


def create_export_executor(
    settings: Optional[Settings] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    mailer: Optional[ReportMailer] = None,
    renderer: Optional[ParticipationReportRenderer] = None,
    metrics: Optional[MetricsCollector] = None
) -> ExportExecutor:
    """
    Create an export executor backed by the database.

    Args:
        settings: Settings (default: cached environment settings)
        session_factory: SQLAlchemy session factory
        mailer: Override the SendGrid mailer (tests)
        renderer: Override the PDF renderer

    Returns:
        ExportExecutor instance
    """
    settings = settings or get_settings()
    log_store = ExportLogStore(session_factory)

    return ExportExecutor(
        course_store=CourseStore(session_factory),
        aggregator=ScoreAggregator(AttemptStore(session_factory)),
        renderer=renderer or ParticipationReportRenderer(),
        mailer=mailer or ReportMailer(settings),
        log_store=log_store,
        metrics=metrics,
    )


def create_export_scheduler(
    executor: ExportExecutor,
    settings: Optional[Settings] = None
) -> "ExportScheduler":
    """Create a scheduler sharing the executor's stores."""
    from scheduling.scheduler import ExportScheduler

    settings = settings or get_settings()
    return ExportScheduler(
        executor=executor,
        course_store=executor.course_store,
        log_store=executor.log_store,
        interval_seconds=settings.scheduler_interval_seconds,
        max_jitter_seconds=settings.scheduler_max_jitter_seconds,
        metrics=executor.metrics,
    )
