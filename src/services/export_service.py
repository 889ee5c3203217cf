"""
Export execution service.

Runs participation report exports for a course:
- Manual rate limiting (per course, trailing hour)
- Resolution of modern / legacy export configurations
- Aggregate -> render -> deliver -> log, per configuration
- Per-configuration isolation: one failing configuration never aborts the others
"""

import asyncio
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from loguru import logger

from config.constants import MAX_MANUAL_EXPORTS_PER_HOUR, RATE_LIMIT_WINDOW_SECONDS
from core.exceptions import (
    ReportExportError,
    CourseNotFoundError,
    ExportConfigNotFoundError,
    ValidationFailedError,
    EmptyResultError,
    RateLimitedError,
)
from core.models import (
    Course, ExportConfiguration, ExportContext, ExportLogEntry, ExportResult, TriggerSource
)
from db.database import utcnow
from export.aggregator import ScoreAggregator
from export.pdf_report import ParticipationReportRenderer
from services.delivery import ReportMailer
from storage.course_store import CourseStore
from storage.export_log_store import ExportLogStore
from utils.metrics import MetricsCollector, get_metrics_collector


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int


class ManualExportRateLimiter:
    """
    Bounds operator-triggered exports per course.

    Counts manual Export Log entries in a trailing window; the scheduler is
    never limited.
    """

    def __init__(
        self,
        log_store: ExportLogStore,
        max_exports: int = MAX_MANUAL_EXPORTS_PER_HOUR,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS
    ):
        self.log_store = log_store
        self.max_exports = max_exports
        self.window_seconds = window_seconds

    def check(self, course_id: str) -> RateLimitStatus:
        since = utcnow() - timedelta(seconds=self.window_seconds)
        recent = self.log_store.count(course_id, TriggerSource.MANUAL, since)
        return RateLimitStatus(
            allowed=recent < self.max_exports,
            remaining=max(0, self.max_exports - recent)
        )

    def enforce(self, course_id: str) -> None:
        """
        Raises:
            RateLimitedError: The course reached its manual export quota
        """
        if not self.check(course_id).allowed:
            raise RateLimitedError(
                f"Limit reached: {self.max_exports} exports per hour. Try again later.",
                limit=self.max_exports,
                window_seconds=self.window_seconds
            )


class ExportExecutor:
    """
    Orchestrates report exports.

    Shared by the scheduler (scheduled trigger) and by operator actions
    (manual trigger, API or CLI).
    """

    def __init__(
        self,
        course_store: CourseStore,
        aggregator: ScoreAggregator,
        renderer: ParticipationReportRenderer,
        mailer: ReportMailer,
        log_store: ExportLogStore,
        rate_limiter: Optional[ManualExportRateLimiter] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.course_store = course_store
        self.aggregator = aggregator
        self.renderer = renderer
        self.mailer = mailer
        self.log_store = log_store
        self.rate_limiter = rate_limiter or ManualExportRateLimiter(log_store)
        self.metrics = metrics or get_metrics_collector()

    async def run_export(
        self,
        course_id: str,
        context: Optional[ExportContext] = None,
        config_id: Optional[str] = None
    ) -> ExportResult:
        """
        Export the reports of a course.

        Args:
            course_id: Course to export
            context: Trigger information (default: scheduled)
            config_id: Run only this configuration (its id, or "legacy-<index>")

        Returns:
            Aggregated result. Failures are reported in the result, never raised.
        """
        context = context or ExportContext.scheduled()

        try:
            course = await asyncio.to_thread(self.course_store.get, course_id)
            if course is None:
                raise CourseNotFoundError(course_id)

            # Rejections are not logged: nothing was attempted
            if context.triggered_by == TriggerSource.MANUAL:
                await asyncio.to_thread(self.rate_limiter.enforce, course_id)

            configs = course.effective_export_configs()
            if not configs:
                raise ValidationFailedError("No export configuration")

            if config_id:
                config = course.find_export_config(config_id)
                if config is None:
                    raise ExportConfigNotFoundError(course_id, config_id)
                return await self._run_config(course, config, context)

            enabled = [c for c in configs if c.enabled]
            if not enabled:
                raise ValidationFailedError("No enabled export configuration")
        except ReportExportError as e:
            logger.warning(f"Export of {course_id} rejected: {e.message}")
            return ExportResult(success=False, message=e.message, error_type=e.error_type)
        except Exception as e:
            logger.exception(f"Export of {course_id} failed: {e}")
            return ExportResult(success=False, message=str(e) or "Unknown error", error_type="error")

        results = await asyncio.gather(
            *(self._run_config(course, config, context) for config in enabled)
        )
        return self._summarize(results)

    async def run_all_active_exports(self) -> Dict[str, int]:
        """
        Run every course having an enabled configuration, as scheduled exports.

        Returns:
            Counts of courses: total, success, failed
        """
        courses = await asyncio.to_thread(self.course_store.list_with_enabled_exports)

        success = 0
        failed = 0
        for course in courses:
            result = await self.run_export(course.id, ExportContext.scheduled())
            if result.success:
                success += 1
                logger.info(f"Export {course.display_name}: {result.message}")
            else:
                failed += 1
                logger.warning(f"Export {course.display_name}: {result.message}")

        return {"total": len(courses), "success": success, "failed": failed}

    # ==================== SINGLE CONFIGURATION ====================

    async def _run_config(
        self,
        course: Course,
        config: ExportConfiguration,
        context: ExportContext
    ) -> ExportResult:
        """Aggregate, render, deliver and log one configuration."""
        label = config.label_for(course.display_name)

        if not config.enabled:
            return ExportResult(success=False, message="Export disabled", error_type=ValidationFailedError.error_type)

        if not config.recipients:
            return ExportResult(
                success=False,
                message="No recipients configured",
                error_type=ValidationFailedError.error_type
            )

        try:
            participants = await asyncio.to_thread(self.aggregator.aggregate, course, config.institution)

            if not participants:
                if config.institution:
                    raise EmptyResultError(f"No participants found for {config.institution}")
                raise EmptyResultError("No participants found")

            generated_on = date.today()
            pdf_bytes = await asyncio.to_thread(
                self.renderer.render, course.display_name, participants, config.institution, generated_on
            )
            await self.mailer.send_report(
                config.recipients, course.display_name, pdf_bytes, config.institution, generated_on
            )
        except ReportExportError as e:
            logger.warning(f"Export {label} failed: {e.message}")
            await self._log(course, label, config, context, success=False, error_message=e.message)
            return ExportResult(success=False, message=e.message, error_type=e.error_type)
        except Exception as e:
            logger.exception(f"Export {label} failed: {e}")
            message = str(e) or "Unknown error"
            await self._log(course, label, config, context, success=False, error_message=message)
            return ExportResult(success=False, message=message, error_type="error")

        await self._log(course, label, config, context, success=True)

        recipient_count = len(config.recipients)
        if config.institution:
            message = f"Export ({config.institution}) sent to {recipient_count} recipient(s)"
        else:
            message = f"Export sent to {recipient_count} recipient(s)"
        logger.info(f"Export {label}: {message}")
        return ExportResult(success=True, message=message, recipient_count=recipient_count)

    async def _log(
        self,
        course: Course,
        label: str,
        config: ExportConfiguration,
        context: ExportContext,
        success: bool,
        error_message: Optional[str] = None
    ) -> None:
        """Append to the Export Log. A failed write is reported in the process log only."""
        self.metrics.record_export(context.triggered_by.value, success)

        entry = ExportLogEntry(
            course_id=course.id,
            label=label,
            recipient_count=len(config.recipients),
            recipients=config.recipients,
            triggered_by=context.triggered_by,
            user_id=context.user_id,
            username=context.username,
            success=success,
            error_message=error_message,
        )
        try:
            await asyncio.to_thread(self.log_store.create, entry)
        except Exception as e:
            logger.error(f"Failed to write export log for {label}: {e}")

    @staticmethod
    def _summarize(results: List[ExportResult]) -> ExportResult:
        successes = [r for r in results if r.success]

        if not successes:
            error_types = {r.error_type for r in results}
            return ExportResult(
                success=False,
                message="; ".join(r.message for r in results),
                error_type=error_types.pop() if len(error_types) == 1 else None
            )

        total_recipients = sum(r.recipient_count or 0 for r in successes)
        return ExportResult(
            success=True,
            message=f"{len(successes)}/{len(results)} export(s) sent to {total_recipients} recipient(s)",
            recipient_count=total_recipients
        )
