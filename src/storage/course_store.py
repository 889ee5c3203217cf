"""
Read access to courses and their export configurations.

Course records are maintained by the course CRUD; this store only loads
them and converts them to core.models.Course.
"""

from typing import Callable, List, Optional

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.exceptions import PersistenceError
from core.models import Course, ExportConfiguration
from db.database import SessionLocal
from db.models import CourseModel, ExportConfigModel


class CourseStore:
    """Loads courses for the export pipeline."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get(self, course_id: str) -> Optional[Course]:
        """
        Fetch a course by its identifier.

        Returns:
            The course, or None when no course has this id

        Raises:
            PersistenceError: The database query failed
        """
        try:
            with self._session_factory() as db:
                row = db.query(CourseModel).options(
                    selectinload(CourseModel.export_configs)
                ).filter(CourseModel.id == course_id).first()
                return self._to_domain(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load course {course_id}: {e}") from e

    def list_with_enabled_exports(self) -> List[Course]:
        """Fetch every course with at least one enabled configuration (modern or legacy)."""
        try:
            with self._session_factory() as db:
                rows = db.query(CourseModel).options(
                    selectinload(CourseModel.export_configs)
                ).filter(
                    or_(
                        CourseModel.export_configs.any(ExportConfigModel.enabled.is_(True)),
                        CourseModel.export_enabled.is_(True),
                    )
                ).order_by(CourseModel.id).all()
                return [self._to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list courses with exports: {e}") from e

    @staticmethod
    def _to_domain(row: CourseModel) -> Course:
        """
        Convert a row. Stored configurations that fail validation (e.g. day 7)
        are logged and left out so the rest of the course stays usable.
        """
        configs = []
        for cfg in row.export_configs:
            try:
                configs.append(ExportConfiguration(
                    id=cfg.id,
                    enabled=cfg.enabled,
                    recipients=cfg.recipients or [],
                    api_key=cfg.api_key,
                    day=cfg.day,
                    hour=cfg.hour,
                    minute=cfg.minute,
                    institution=cfg.institution,
                ))
            except ValidationError as e:
                logger.warning(f"Skipping invalid export configuration {cfg.id} of course {row.id}: {e}")

        course = Course(
            id=row.id,
            display_name=row.display_name,
            collection_name=row.collection_name,
            export_configs=configs,
            export_enabled=bool(row.export_enabled),
            export_recipients=row.export_recipients or [],
            export_api_key=row.export_api_key,
            export_day=row.export_day,
            export_hour=row.export_hour,
            export_minute=row.export_minute,
            export_institution=row.export_institution,
        )

        if configs or not course.export_enabled:
            return course

        # Legacy fields only apply when the course never had modern configurations
        if row.export_configs:
            return course.model_copy(update={"export_enabled": False})
        try:
            course.legacy_export_config()
        except ValidationError as e:
            logger.warning(f"Disabling invalid legacy export of course {row.id}: {e}")
            course = course.model_copy(update={"export_enabled": False})

        return course
