"""
Core data models for the report export pipeline.

This module defines the Pydantic models passed between the stores, the
executor, the renderer and the scheduler. Persistence classes live in
db.models and are converted to these models at the store boundary.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Tuple
from datetime import datetime
from enum import Enum

from config.constants import (
    DEFAULT_ATTEMPT_COLLECTION,
    DEFAULT_EXPORT_DAY,
    DEFAULT_EXPORT_HOUR,
    DEFAULT_EXPORT_MINUTE,
    LEGACY_CONFIG_PREFIX,
)


class TriggerSource(str, Enum):
    """Who started an export."""
    MANUAL = "manual"         # Operator action (API / CLI)
    SCHEDULED = "scheduled"   # Scheduler tick


def export_label(course_name: str, institution: Optional[str] = None) -> str:
    """
    Build the display label used in the Export Log.

    The label doubles as the key the scheduler uses to find a previous
    successful send, so it must stay stable for a given configuration.
    """
    if institution:
        return f"{course_name} ({institution})"
    return course_name


class ExportContext(BaseModel):
    """Trigger information attached to an export run."""
    triggered_by: TriggerSource = TriggerSource.SCHEDULED
    user_id: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def manual(cls, user_id: Optional[str] = None, username: Optional[str] = None) -> "ExportContext":
        return cls(triggered_by=TriggerSource.MANUAL, user_id=user_id, username=username)

    @classmethod
    def scheduled(cls) -> "ExportContext":
        return cls(triggered_by=TriggerSource.SCHEDULED)


class ExportConfiguration(BaseModel):
    """
    One report rule attached to a course.

    A course may carry several of these (one per audience or cadence).
    Configurations synthesized from legacy course fields have no id.
    """
    id: Optional[str] = None
    enabled: bool = True
    recipients: List[str] = Field(default_factory=list)
    api_key: Optional[str] = None  # Legacy credential, kept for compatibility only
    day: int = Field(default=DEFAULT_EXPORT_DAY, ge=0, le=6)  # 0 = Sunday
    hour: int = Field(default=DEFAULT_EXPORT_HOUR, ge=0, le=23)
    minute: int = Field(default=DEFAULT_EXPORT_MINUTE, ge=0, le=59)
    institution: Optional[str] = None  # Sub-audience filter, None = everyone

    @field_validator('recipients')
    @classmethod
    def normalize_recipients(cls, v: List[str]) -> List[str]:
        """Trim addresses, dropping blanks."""
        return [r.strip() for r in v if r and r.strip()]

    @field_validator('institution')
    @classmethod
    def blank_institution_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def is_due(self, day: int, hour: int, minute: int) -> bool:
        """Check whether this configuration fires at the given weekly slot."""
        return (self.day, self.hour, self.minute) == (day, hour, minute)

    def label_for(self, course_name: str) -> str:
        return export_label(course_name, self.institution)

    def key(self, index: int) -> str:
        """Stable identifier: the stored id, or a positional placeholder for legacy configs."""
        return self.id or f"{LEGACY_CONFIG_PREFIX}-{index}"


class Course(BaseModel):
    """
    A training course as seen by the export pipeline (read-only).
    """
    id: str
    display_name: str
    collection_name: str = DEFAULT_ATTEMPT_COLLECTION
    export_configs: List[ExportConfiguration] = Field(default_factory=list)

    # Legacy single-configuration fields
    export_enabled: bool = False
    export_recipients: List[str] = Field(default_factory=list)
    export_api_key: Optional[str] = None
    export_day: Optional[int] = None
    export_hour: Optional[int] = None
    export_minute: Optional[int] = None
    export_institution: Optional[str] = None

    def legacy_export_config(self) -> Optional[ExportConfiguration]:
        """
        Translate the legacy flat fields into a configuration.

        Returns:
            A configuration without id, or None when the legacy export is
            disabled or has no recipient.
        """
        if not self.export_enabled or not self.export_recipients:
            return None
        return ExportConfiguration(
            enabled=True,
            recipients=self.export_recipients,
            api_key=self.export_api_key,
            day=self.export_day if self.export_day is not None else DEFAULT_EXPORT_DAY,
            hour=self.export_hour if self.export_hour is not None else DEFAULT_EXPORT_HOUR,
            minute=self.export_minute if self.export_minute is not None else DEFAULT_EXPORT_MINUTE,
            institution=self.export_institution,
        )

    def effective_export_configs(self) -> List[ExportConfiguration]:
        """Modern configurations, or the synthesized legacy one when there are none."""
        if self.export_configs:
            return list(self.export_configs)
        legacy = self.legacy_export_config()
        return [legacy] if legacy else []

    def find_export_config(self, config_key: str) -> Optional[ExportConfiguration]:
        """Look up an effective configuration by its key (see ExportConfiguration.key)."""
        for index, config in enumerate(self.effective_export_configs()):
            if config.key(index) == config_key:
                return config
        return None

    @property
    def has_enabled_export(self) -> bool:
        return any(c.enabled for c in self.effective_export_configs())


class AttemptRecord(BaseModel):
    """One completed quiz submission. Immutable."""
    model_config = ConfigDict(frozen=True)

    first_name: str = ""
    last_name: str = ""
    institution: str = ""
    service: str = ""
    score: float = 0
    total_questions: Optional[int] = None
    created_at: datetime
    course_id: str

    @property
    def identity(self) -> Tuple[str, str, str]:
        """Participant identity used for deduplication."""
        return (self.first_name, self.last_name, self.institution)


class ExportLogEntry(BaseModel):
    """One row of the append-only export audit trail."""
    id: Optional[int] = None
    course_id: str
    label: str
    recipient_count: int = 0
    recipients: List[str] = Field(default_factory=list)
    triggered_by: TriggerSource
    user_id: Optional[str] = None
    username: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class ExportResult(BaseModel):
    """Outcome of an export request, for one configuration or a whole course."""
    success: bool
    message: str
    recipient_count: Optional[int] = None
    error_type: Optional[str] = None  # ReportExportError.error_type on failure
