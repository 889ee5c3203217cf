"""
Read-only access to quiz attempts.

Each course points at an attempt collection. Repositories are created once
per collection and reused.
"""

import threading
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import PersistenceError
from core.models import AttemptRecord
from db.database import SessionLocal
from db.models import AttemptModel


class AttemptRepository:
    """Read-only view over one attempt collection."""

    def __init__(self, collection: str, session_factory: Callable[[], Session]):
        self.collection = collection
        self._session_factory = session_factory

    def find(self, course_id: str, institution: Optional[str] = None) -> List[AttemptRecord]:
        """
        Fetch all attempts of a course, in insertion order.

        Args:
            course_id: Course the attempts belong to
            institution: Optional sub-audience filter (exact match)

        Raises:
            PersistenceError: The database query failed
        """
        try:
            with self._session_factory() as db:
                query = db.query(AttemptModel).filter(
                    AttemptModel.collection == self.collection,
                    AttemptModel.course_id == course_id
                )
                if institution:
                    query = query.filter(AttemptModel.institution == institution)

                return [
                    AttemptRecord(
                        first_name=row.first_name or "",
                        last_name=row.last_name or "",
                        institution=row.institution or "",
                        service=row.service or "",
                        score=row.score or 0,
                        total_questions=row.total_questions,
                        created_at=row.created_at,
                        course_id=row.course_id,
                    )
                    for row in query.order_by(AttemptModel.id).all()
                ]
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to load attempts for {course_id} from {self.collection}: {e}"
            ) from e


class AttemptStore:
    """Hands out one cached AttemptRepository per collection."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._repositories: Dict[str, AttemptRepository] = {}
        self._lock = threading.Lock()

    def for_course(self, collection: str) -> AttemptRepository:
        with self._lock:
            repository = self._repositories.get(collection)
            if repository is None:
                repository = AttemptRepository(collection, self._session_factory)
                self._repositories[collection] = repository
            return repository
