"""
Tests for the export executor and the manual rate limiter.
"""

import asyncio

from core.models import ExportContext, ExportLogEntry, TriggerSource
from services.factory import create_export_executor
from storage.export_log_store import ExportLogStore

from conftest import FakeMailer, add_attempts, add_course


def manual():
    return ExportContext.manual(user_id="u1", username="alice")


def seed_three_configs(session_factory):
    """One course, three configs; the East one matches no participant."""
    add_course(session_factory, "c1", "Hand hygiene", configs=[
        {"id": "all", "recipients": ["boss@x.org", "hr@x.org"]},
        {"id": "north", "recipients": ["north@x.org"], "institution": "North"},
        {"id": "east", "recipients": ["east@x.org"], "institution": "East"},
    ])
    add_attempts(session_factory, "c1", [
        {"first_name": "Ann", "institution": "North", "score": 12},
        {"first_name": "Bob", "institution": "South", "score": 9},
    ])


def test_run_export_all_configs(session_factory, executor, mailer):
    """Test every enabled config is sent and logged."""
    add_course(session_factory, "c1", "Hand hygiene", configs=[
        {"id": "all", "recipients": ["boss@x.org", "hr@x.org"]},
        {"id": "north", "recipients": ["north@x.org"], "institution": "North"},
    ])
    add_attempts(session_factory, "c1", [
        {"first_name": "Ann", "institution": "North", "score": 12},
        {"first_name": "Ann", "institution": "North", "score": 15},
        {"first_name": "Bob", "institution": "South", "score": 9},
    ])

    result = asyncio.run(executor.run_export("c1", manual()))

    assert result.success
    assert result.message == "2/2 export(s) sent to 3 recipient(s)"
    assert result.recipient_count == 3
    assert sorted(m["institution"] or "" for m in mailer.sent) == ["", "North"]
    assert all(m["pdf_bytes"].startswith(b"%PDF") for m in mailer.sent)

    logs = ExportLogStore(session_factory).list_recent("c1")
    assert len(logs) == 2
    assert all(log.success and log.triggered_by == TriggerSource.MANUAL for log in logs)
    assert {log.label for log in logs} == {"Hand hygiene", "Hand hygiene (North)"}
    assert all(log.user_id == "u1" and log.username == "alice" for log in logs)


def test_partial_failure(session_factory, executor, mailer):
    """Test one empty config fails without aborting the others."""
    seed_three_configs(session_factory)

    result = asyncio.run(executor.run_export("c1", manual()))

    assert result.success
    assert result.message == "2/3 export(s) sent to 3 recipient(s)"
    assert len(mailer.sent) == 2

    logs = ExportLogStore(session_factory).list_recent("c1")
    failures = [log for log in logs if not log.success]
    assert len(logs) == 3
    assert len(failures) == 1
    assert failures[0].label == "Hand hygiene (East)"
    assert failures[0].error_message == "No participants found for East"


def test_delivery_failure_is_isolated(session_factory, metrics):
    """Test a failing email only fails its own config."""
    seed_three_configs(session_factory)
    mailer = FakeMailer(fail_for={"North"})
    executor = create_export_executor(session_factory=session_factory, mailer=mailer, metrics=metrics)

    result = asyncio.run(executor.run_export("c1", manual(), "north"))

    assert not result.success
    assert result.error_type == "delivery"
    logs = ExportLogStore(session_factory).list_recent("c1")
    assert len(logs) == 1
    assert not logs[0].success
    assert "connection refused" in logs[0].error_message

    result = asyncio.run(executor.run_export("c1", manual(), "all"))
    assert result.success
    assert result.message == "Export sent to 2 recipient(s)"


def test_all_configs_fail(session_factory, executor):
    add_course(session_factory, "c1", "Hand hygiene", configs=[
        {"id": "east", "recipients": ["east@x.org"], "institution": "East"},
    ])

    result = asyncio.run(executor.run_export("c1", manual()))

    assert not result.success
    assert result.message == "No participants found for East"
    assert result.error_type == "empty_result"


def test_course_not_found(executor):
    result = asyncio.run(executor.run_export("missing", manual()))

    assert not result.success
    assert result.message == "Course not found"
    assert result.error_type == "not_found"


def test_no_configuration(session_factory, executor):
    add_course(session_factory, "c1", "Hand hygiene")

    result = asyncio.run(executor.run_export("c1", manual()))

    assert not result.success
    assert result.message == "No export configuration"


def test_no_enabled_configuration(session_factory, executor):
    add_course(session_factory, "c1", "Hand hygiene", configs=[
        {"id": "off", "enabled": False, "recipients": ["a@x.org"]},
    ])

    result = asyncio.run(executor.run_export("c1", manual()))

    assert not result.success
    assert result.message == "No enabled export configuration"


def test_unknown_config_id(session_factory, executor):
    add_course(session_factory, "c1", "Hand hygiene", configs=[{"id": "all", "recipients": ["a@x.org"]}])

    result = asyncio.run(executor.run_export("c1", manual(), "nope"))

    assert not result.success
    assert result.message == "Export configuration not found"
    assert result.error_type == "not_found"


def test_disabled_config_requested_by_id(session_factory, executor, mailer):
    """Test a disabled config is rejected without a log entry."""
    add_course(session_factory, "c1", "Hand hygiene", configs=[
        {"id": "off", "enabled": False, "recipients": ["a@x.org"]},
    ])
    add_attempts(session_factory, "c1", [{"first_name": "Ann"}])

    result = asyncio.run(executor.run_export("c1", manual(), "off"))

    assert not result.success
    assert result.message == "Export disabled"
    assert mailer.sent == []
    assert ExportLogStore(session_factory).list_recent("c1") == []


def test_legacy_configuration(session_factory, executor, mailer):
    """Test the legacy flat fields export when no modern config exists."""
    add_course(
        session_factory, "c1", "Hand hygiene",
        export_enabled=True, export_recipients=[" Legacy@X.org "]
    )
    add_attempts(session_factory, "c1", [{"first_name": "Ann"}])

    result = asyncio.run(executor.run_export("c1", manual(), "legacy-0"))

    assert result.success
    assert mailer.sent[0]["recipients"] == ["Legacy@X.org"]


def test_rate_limit(session_factory, executor, mailer):
    """Test the 11th manual export within an hour is rejected and not logged."""
    add_course(session_factory, "c1", "Hand hygiene", configs=[{"id": "all", "recipients": ["a@x.org"]}])
    add_attempts(session_factory, "c1", [{"first_name": "Ann"}])
    log_store = ExportLogStore(session_factory)
    for _ in range(10):
        log_store.create(ExportLogEntry(
            course_id="c1", label="Hand hygiene", triggered_by=TriggerSource.MANUAL, success=True
        ))

    assert not executor.rate_limiter.check("c1").allowed

    result = asyncio.run(executor.run_export("c1", manual()))

    assert not result.success
    assert result.error_type == "rate_limited"
    assert result.message == "Limit reached: 10 exports per hour. Try again later."
    assert mailer.sent == []
    assert len(log_store.list_recent("c1")) == 10

    # Other courses and scheduled exports are not limited
    assert executor.rate_limiter.check("c2").remaining == 10
    scheduled = asyncio.run(executor.run_export("c1", ExportContext.scheduled()))
    assert scheduled.success


def test_rate_limit_counts_failures(session_factory, executor):
    """Test failed manual attempts also count toward the quota."""
    log_store = ExportLogStore(session_factory)
    for _ in range(4):
        log_store.create(ExportLogEntry(
            course_id="c1", label="x", triggered_by=TriggerSource.MANUAL, success=False
        ))
    log_store.create(ExportLogEntry(
        course_id="c1", label="x", triggered_by=TriggerSource.SCHEDULED, success=True
    ))

    assert executor.rate_limiter.check("c1").remaining == 6


def test_run_all_active_exports(session_factory, executor, mailer):
    """Test every course with an enabled config is exported once."""
    add_course(session_factory, "c1", "One", configs=[{"id": "a", "recipients": ["a@x.org"]}])
    add_course(session_factory, "c2", "Two", export_enabled=True, export_recipients=["b@x.org"])
    add_course(session_factory, "c3", "Three", configs=[{"id": "off", "enabled": False, "recipients": ["c@x.org"]}])
    add_course(session_factory, "c4", "Four", configs=[{"id": "d", "recipients": ["d@x.org"]}])
    add_attempts(session_factory, "c1", [{"first_name": "Ann"}])
    add_attempts(session_factory, "c2", [{"first_name": "Bob"}])

    counts = asyncio.run(executor.run_all_active_exports())

    assert counts == {"total": 3, "success": 2, "failed": 1}
    assert sorted(m["course_name"] for m in mailer.sent) == ["One", "Two"]
    logs = ExportLogStore(session_factory).list_recent()
    assert all(log.triggered_by == TriggerSource.SCHEDULED for log in logs)


def test_metrics_recorded(session_factory, executor, metrics):
    seed_three_configs(session_factory)

    asyncio.run(executor.run_export("c1", manual()))

    export_metrics = metrics.get_export_metrics()
    assert export_metrics["exports_sent"] == {"manual": 2}
    assert export_metrics["exports_failed"] == {"manual": 1}
