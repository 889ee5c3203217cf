"""
Shared fixtures: a throwaway SQLite database per test and a recording mailer.
"""

import os

# Must be set before config.settings is first imported
os.environ.setdefault("REPORTS_DATABASE_URL", "sqlite://")
os.environ.setdefault("REPORTS_SENDGRID_SANDBOX_MODE", "true")
os.environ.setdefault("REPORTS_DISABLE_EXPORT_SCHEDULER", "true")

import pytest
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from core.exceptions import DeliveryError
from db.database import create_db_engine, init_db, utcnow
from db.models import AttemptModel, CourseModel, ExportConfigModel
from services.factory import create_export_executor
from utils.metrics import MetricsCollector


class FakeMailer:
    """Records reports instead of emailing them."""

    def __init__(self, fail_for: Optional[set] = None):
        self.sent: List[Dict] = []
        self.fail_for = fail_for or set()

    async def send_report(self, recipients, course_name, pdf_bytes, institution=None, generated_on=None):
        if institution in self.fail_for:
            raise DeliveryError("Email delivery failed: connection refused")
        self.sent.append({
            "recipients": list(recipients),
            "course_name": course_name,
            "institution": institution,
            "pdf_bytes": pdf_bytes,
        })


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'reports.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def executor(session_factory, mailer, metrics):
    return create_export_executor(session_factory=session_factory, mailer=mailer, metrics=metrics)


def add_course(session_factory, course_id: str, display_name: Optional[str] = None,
               configs: Optional[List[Dict]] = None, **legacy) -> None:
    """Insert a course with its export configurations (list of column dicts)."""
    with session_factory() as db:
        course = CourseModel(id=course_id, display_name=display_name or course_id, **legacy)
        for position, config in enumerate(configs or []):
            course.export_configs.append(ExportConfigModel(position=position, **config))
        db.add(course)
        db.commit()


def add_attempts(session_factory, course_id: str, rows: List[Dict], collection: str = "scores") -> None:
    """Insert attempts; each row may override names, institution, score and created_at."""
    with session_factory() as db:
        for row in rows:
            values = {
                "first_name": "Ann",
                "last_name": "Lee",
                "institution": "",
                "service": "Nursing",
                "score": 10,
                "total_questions": 16,
                "created_at": utcnow(),
            }
            values.update(row)
            db.add(AttemptModel(collection=collection, course_id=course_id, **values))
        db.commit()


# Monday 19 October 2026, 08:00 local time
MONDAY_8AM = datetime(2026, 10, 19, 8, 0)
