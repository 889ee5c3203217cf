"""
Weekly export scheduler.

Once per minute, checks every enabled export configuration of every course
and runs those whose (day, hour, minute) slot matches the current time.

Several server instances may run this scheduler against the same database.
Double sends are avoided on a best-effort basis:
1. an in-process lock per (course, configuration, minute) prevents the same
   instance from running a slot twice;
2. a successful scheduled Export Log entry for the same course and label in
   the last minutes means another instance already sent it.
There is no atomic claim: two instances passing step 2 at the same time can
both send.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Set

from loguru import logger

from config.constants import LOCAL_LOCK_TTL_SECONDS, SCHEDULED_DEDUP_WINDOW_SECONDS
from core.models import Course, ExportConfiguration, ExportContext, ExportResult, TriggerSource
from db.database import utcnow
from scheduling.locks import ExpiringKeySet
from services.export_service import ExportExecutor
from storage.course_store import CourseStore
from storage.export_log_store import ExportLogStore
from utils.metrics import MetricsCollector, get_metrics_collector

SKIP_LOCKED = "locked"
SKIP_ALREADY_SENT = "already_sent"


def weekly_slot(now: datetime) -> tuple:
    """(day of week with 0 = Sunday, hour, minute) of a local time."""
    return ((now.weekday() + 1) % 7, now.hour, now.minute)


def coordination_key(course_id: str, config_key: str, now: datetime) -> str:
    """Key identifying one configuration at one calendar minute."""
    return f"{course_id}-{config_key}-{now:%Y-%m-%d}-{now.hour}-{now.minute}"


@dataclass
class ScheduledRun:
    """What a tick did for one due configuration."""
    course_id: str
    config_key: str
    label: str
    lock_key: str
    result: Optional[ExportResult] = None
    skipped: Optional[str] = None
    error: Optional[str] = None


class ExportScheduler:
    """
    Recurring timer driving scheduled exports.

    Usage:
        scheduler = ExportScheduler(executor, course_store, log_store)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        executor: ExportExecutor,
        course_store: CourseStore,
        log_store: ExportLogStore,
        interval_seconds: float = 60.0,
        max_jitter_seconds: float = 10.0,
        lock_ttl_seconds: float = LOCAL_LOCK_TTL_SECONDS,
        dedup_window_seconds: int = SCHEDULED_DEDUP_WINDOW_SECONDS,
        metrics: Optional[MetricsCollector] = None
    ):
        self.executor = executor
        self.course_store = course_store
        self.log_store = log_store
        self.interval_seconds = interval_seconds
        self.max_jitter_seconds = max_jitter_seconds
        self.dedup_window_seconds = dedup_window_seconds
        self.locks = ExpiringKeySet(lock_ttl_seconds)
        self.metrics = metrics or get_metrics_collector()

        self._task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    # ==================== LIFECYCLE ====================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the timer on the running event loop."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run_forever(), name="export-scheduler")
        logger.info(f"Export scheduler started (every {self.interval_seconds:g}s)")
        return self._task

    async def stop(self) -> None:
        """Cancel the timer and any tick still running. In-flight exports are abandoned."""
        tasks = list(self._ticks)
        if self._task is not None:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._ticks.clear()
        logger.info("Export scheduler stopped")

    async def _run_forever(self) -> None:
        # Random start delay desynchronizes instances started together
        await asyncio.sleep(random.uniform(0, self.max_jitter_seconds))

        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            # Ticks run as tasks so a slow tick never delays the next minute
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

            next_tick += self.interval_seconds
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    # ==================== TICK ====================

    async def tick(self, now: Optional[datetime] = None) -> List[ScheduledRun]:
        """
        Run every configuration due at `now` (default: current local time).

        Never raises: errors are logged and the next tick proceeds normally.
        """
        now = now or datetime.now()
        day, hour, minute = weekly_slot(now)
        runs: List[ScheduledRun] = []

        try:
            courses = await asyncio.to_thread(self.course_store.list_with_enabled_exports)

            due: List[ScheduledRun] = []
            for course in courses:
                try:
                    configs = course.effective_export_configs()
                except Exception as e:
                    logger.error(f"Skipping course {course.id} this tick: {e}")
                    continue

                for index, config in enumerate(configs):
                    if not config.enabled or not config.is_due(day, hour, minute):
                        continue

                    run = self._plan(course, config, index, now)
                    runs.append(run)

                    if not self.locks.acquire(run.lock_key):
                        run.skipped = SKIP_LOCKED
                        self.metrics.record_scheduled_skip(SKIP_LOCKED)
                        continue
                    due.append(run)

            await asyncio.gather(*(self._dispatch(run) for run in due))
        except Exception as e:
            logger.exception(f"Export scheduler tick failed: {e}")
            self.metrics.record_tick(failed=True)
            return runs

        self.metrics.record_tick()
        return runs

    @staticmethod
    def _plan(course: Course, config: ExportConfiguration, index: int, now: datetime) -> ScheduledRun:
        config_key = config.key(index)
        return ScheduledRun(
            course_id=course.id,
            config_key=config_key,
            label=config.label_for(course.display_name),
            lock_key=coordination_key(course.id, config_key, now),
        )

    async def _dispatch(self, run: ScheduledRun) -> ScheduledRun:
        """Check the Export Log for another instance's send, then export."""
        try:
            since = utcnow() - timedelta(seconds=self.dedup_window_seconds)
            existing = await asyncio.to_thread(
                self.log_store.find_one,
                run.course_id, run.label, TriggerSource.SCHEDULED, True, since
            )
            if existing is not None:
                logger.info(f"Export already sent: {run.label}")
                run.skipped = SKIP_ALREADY_SENT
                self.metrics.record_scheduled_skip(SKIP_ALREADY_SENT)
                return run

            logger.info(f"Scheduled export: {run.label}")
            run.result = await self.executor.run_export(
                run.course_id, ExportContext.scheduled(), run.config_key
            )
            if run.result.success:
                logger.info(f"{run.label}: {run.result.message}")
            else:
                # Lock is kept: next attempt is the next weekly slot
                logger.warning(f"{run.label}: {run.result.message}")
        except Exception as e:
            logger.exception(f"Scheduled export of {run.label} failed: {e}")
            run.error = str(e)
        return run
