"""Database models for the report export service."""

from sqlalchemy import (
    Column, String, DateTime, Integer, Boolean, Float, Text, JSON,
    ForeignKey, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
import uuid

from config.constants import DEFAULT_ATTEMPT_COLLECTION
from core.models import TriggerSource
from db.database import Base, utcnow


class CourseModel(Base):
    """
    Training course. Owned by the course CRUD; read-only for exports.

    The flat export_* columns are the legacy single-configuration shape,
    superseded by export_configs.
    """
    __tablename__ = "courses"

    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False)
    collection_name = Column(String, nullable=False, default=DEFAULT_ATTEMPT_COLLECTION)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    export_configs = relationship(
        "ExportConfigModel",
        back_populates="course",
        order_by="ExportConfigModel.position",
        cascade="all, delete-orphan"
    )

    # Legacy fields
    export_enabled = Column(Boolean, default=False, nullable=False)
    export_recipients = Column(JSON, default=list)
    export_api_key = Column(String, nullable=True)
    export_day = Column(Integer, nullable=True)
    export_hour = Column(Integer, nullable=True)
    export_minute = Column(Integer, nullable=True)
    export_institution = Column(String, nullable=True)


class ExportConfigModel(Base):
    """One scheduled report rule of a course."""
    __tablename__ = "export_configs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, default=True, nullable=False, index=True)
    recipients = Column(JSON, default=list)
    api_key = Column(String, nullable=True)
    day = Column(Integer, default=1, nullable=False)  # 0 = Sunday
    hour = Column(Integer, default=8, nullable=False)
    minute = Column(Integer, default=0, nullable=False)
    institution = Column(String, nullable=True)

    course = relationship("CourseModel", back_populates="export_configs")


class AttemptModel(Base):
    """Quiz submission written by the quiz-taking flow."""
    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String, nullable=False, default=DEFAULT_ATTEMPT_COLLECTION, index=True)
    course_id = Column(String, nullable=False, index=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    institution = Column(String, default="", index=True)
    service = Column(String, default="")
    score = Column(Float, default=0)
    total_questions = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class ExportLogModel(Base):
    """Append-only audit trail of export attempts."""
    __tablename__ = "export_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(String, nullable=False, index=True)
    label = Column(String, nullable=False)
    recipient_count = Column(Integer, default=0)
    recipients = Column(JSON, default=list)
    triggered_by = Column(
        SQLEnum(TriggerSource, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    user_id = Column(String, nullable=True)
    username = Column(String, nullable=True)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Rate limiting and scheduler lookups filter by course and recency
    __table_args__ = (
        Index('ix_export_logs_course_created', 'course_id', 'created_at'),
    )
