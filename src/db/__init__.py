"""Database module for the report export service."""

from db.database import Base, engine, SessionLocal, init_db, utcnow, create_db_engine
from db.models import CourseModel, ExportConfigModel, AttemptModel, ExportLogModel

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "init_db",
    "utcnow",
    "create_db_engine",
    "CourseModel",
    "ExportConfigModel",
    "AttemptModel",
    "ExportLogModel",
]
