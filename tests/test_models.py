"""
Tests for core models.
"""

import pytest
from datetime import datetime

from pydantic import ValidationError

from core.models import (
    AttemptRecord, Course, ExportConfiguration, ExportContext, TriggerSource, export_label
)


def test_export_label():
    """Test label with and without institution."""
    assert export_label("form_1") == "form_1"
    assert export_label("form_1", "Hospital North") == "form_1 (Hospital North)"


def test_export_context():
    """Test trigger context constructors."""
    manual = ExportContext.manual(user_id="u1", username="alice")
    assert manual.triggered_by == TriggerSource.MANUAL
    assert manual.user_id == "u1"

    scheduled = ExportContext.scheduled()
    assert scheduled.triggered_by == TriggerSource.SCHEDULED
    assert scheduled.user_id is None


def test_export_configuration_defaults():
    """Test default weekly slot is Monday 08:00."""
    config = ExportConfiguration(recipients=["a@x.org"])

    assert config.enabled
    assert (config.day, config.hour, config.minute) == (1, 8, 0)
    assert config.is_due(1, 8, 0)
    assert not config.is_due(1, 8, 1)


def test_export_configuration_normalization():
    """Test recipients are trimmed with case kept, blank institution dropped."""
    config = ExportConfiguration(
        recipients=["  Alice@Example.ORG ", "", "   ", "bob@x.org"],
        institution="   "
    )

    assert config.recipients == ["Alice@Example.ORG", "bob@x.org"]
    assert config.institution is None
    assert config.label_for("form_1") == "form_1"


def test_export_configuration_rejects_bad_slot():
    """Test out of range day / hour."""
    with pytest.raises(ValidationError):
        ExportConfiguration(day=7)
    with pytest.raises(ValidationError):
        ExportConfiguration(hour=24)


def test_legacy_configuration():
    """Test legacy fields are translated when no modern config exists."""
    course = Course(
        id="c1",
        display_name="Hygiene",
        export_enabled=True,
        export_recipients=["A@x.org"],
        export_hour=9,
        export_institution="Clinic"
    )

    configs = course.effective_export_configs()
    assert len(configs) == 1
    legacy = configs[0]
    assert legacy.id is None
    assert legacy.recipients == ["A@x.org"]
    assert (legacy.day, legacy.hour, legacy.minute) == (1, 9, 0)
    assert legacy.institution == "Clinic"
    assert legacy.key(0) == "legacy-0"
    assert course.has_enabled_export


def test_legacy_ignored_when_disabled_or_empty():
    """Test legacy export needs both the flag and a recipient."""
    assert Course(id="c1", display_name="x", export_enabled=True).effective_export_configs() == []
    assert Course(id="c1", display_name="x", export_recipients=["a@x.org"]).effective_export_configs() == []


def test_modern_configs_take_precedence():
    """Test legacy fields are ignored when modern configs exist."""
    course = Course(
        id="c1",
        display_name="x",
        export_configs=[ExportConfiguration(id="cfg-1", enabled=False)],
        export_enabled=True,
        export_recipients=["a@x.org"]
    )

    assert [c.id for c in course.effective_export_configs()] == ["cfg-1"]
    assert not course.has_enabled_export


def test_find_export_config():
    """Test lookup by id and by legacy key."""
    course = Course(
        id="c1",
        display_name="x",
        export_configs=[ExportConfiguration(id="a"), ExportConfiguration(id="b")]
    )
    assert course.find_export_config("b").id == "b"
    assert course.find_export_config("legacy-0") is None

    legacy = Course(id="c2", display_name="y", export_enabled=True, export_recipients=["a@x.org"])
    assert legacy.find_export_config("legacy-0") is not None
    assert legacy.find_export_config("missing") is None


def test_attempt_record_identity():
    """Test identity and immutability."""
    record = AttemptRecord(
        first_name="Ann",
        last_name="Lee",
        institution="North",
        score=12,
        created_at=datetime(2026, 10, 1),
        course_id="c1"
    )

    assert record.identity == ("Ann", "Lee", "North")
    with pytest.raises(ValidationError):
        record.score = 20
