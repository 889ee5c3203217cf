"""
Export Log storage.

Append-only audit trail of export attempts. Besides auditing, the log is
read back by the manual rate limiter (count) and by the scheduler to detect
a send already made by another instance (find_one).
"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import PersistenceError
from core.models import ExportLogEntry, TriggerSource
from config.constants import DEFAULT_LOG_LIMIT
from db.database import SessionLocal, utcnow
from db.models import ExportLogModel


class ExportLogStore:
    """Append, count and look up Export Log entries."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def create(self, entry: ExportLogEntry) -> ExportLogEntry:
        """
        Append an entry. Existing entries are never updated.

        Returns:
            The stored entry with its id and creation timestamp
        """
        row = ExportLogModel(
            course_id=entry.course_id,
            label=entry.label,
            recipient_count=entry.recipient_count,
            recipients=list(entry.recipients),
            triggered_by=entry.triggered_by,
            user_id=entry.user_id,
            username=entry.username,
            success=entry.success,
            error_message=entry.error_message,
            created_at=entry.created_at or utcnow(),
        )
        try:
            with self._session_factory() as db:
                db.add(row)
                db.commit()
                db.refresh(row)
                return self._to_domain(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write export log for {entry.course_id}: {e}") from e

    def count(self, course_id: str, triggered_by: TriggerSource, since: datetime) -> int:
        """Count entries of a course for a trigger source created at or after `since`."""
        try:
            with self._session_factory() as db:
                return db.query(ExportLogModel).filter(
                    ExportLogModel.course_id == course_id,
                    ExportLogModel.triggered_by == triggered_by,
                    ExportLogModel.created_at >= since
                ).count()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count export logs for {course_id}: {e}") from e

    def find_one(
        self,
        course_id: str,
        label: str,
        triggered_by: TriggerSource,
        success: bool,
        since: datetime
    ) -> Optional[ExportLogEntry]:
        """Latest entry matching course, label, trigger and outcome since `since`, if any."""
        try:
            with self._session_factory() as db:
                row = db.query(ExportLogModel).filter(
                    ExportLogModel.course_id == course_id,
                    ExportLogModel.label == label,
                    ExportLogModel.triggered_by == triggered_by,
                    ExportLogModel.success == success,
                    ExportLogModel.created_at >= since
                ).order_by(ExportLogModel.created_at.desc()).first()
                return self._to_domain(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up export logs for {course_id}: {e}") from e

    def list_recent(self, course_id: Optional[str] = None, limit: int = DEFAULT_LOG_LIMIT) -> List[ExportLogEntry]:
        """Most recent entries first, optionally for one course."""
        try:
            with self._session_factory() as db:
                query = db.query(ExportLogModel)
                if course_id:
                    query = query.filter(ExportLogModel.course_id == course_id)
                rows = query.order_by(
                    ExportLogModel.created_at.desc(), ExportLogModel.id.desc()
                ).limit(limit).all()
                return [self._to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list export logs: {e}") from e

    @staticmethod
    def _to_domain(row: ExportLogModel) -> ExportLogEntry:
        return ExportLogEntry(
            id=row.id,
            course_id=row.course_id,
            label=row.label,
            recipient_count=row.recipient_count or 0,
            recipients=row.recipients or [],
            triggered_by=row.triggered_by,
            user_id=row.user_id,
            username=row.username,
            success=row.success,
            error_message=row.error_message,
            created_at=row.created_at,
        )
