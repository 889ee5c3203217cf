"""
Tests for report email delivery.
"""

import asyncio
import base64
import pytest
from datetime import date

from config.settings import Settings
from core.exceptions import DeliveryError
from services.delivery import ReportMailer, report_filename, report_subject


class RecordingClient:
    """Stands in for SendGridAPIClient."""

    def __init__(self, status_code=202, error=None):
        self.status_code = status_code
        self.error = error
        self.messages = []

    def send(self, message):
        if self.error:
            raise self.error
        self.messages.append(message)
        return type("Response", (), {"status_code": self.status_code})()


def make_settings(**overrides):
    values = {
        "sendgrid_api_key": "SG.test",
        "sendgrid_sender": "reports@example.org",
        "sendgrid_sandbox_mode": False,
    }
    values.update(overrides)
    return Settings(**values)


def test_subject_and_filename():
    """Test subject and attachment name with and without institution."""
    today = date(2026, 10, 19)

    assert report_subject("Hand hygiene", None, today) == "Participation report: Hand hygiene - 19/10/2026"
    assert report_subject("form_1", "North", today) == "Participation report: form_1 (North) - 19/10/2026"
    assert report_filename("Hand hygiene", None, today) == "Participants_Hand_hygiene_19-10-2026.pdf"
    assert report_filename("form_1", "North", today) == "Participants_form_1_North_19-10-2026.pdf"


def test_filename_sanitizes_institution():
    """Test spaces and path separators never reach the attachment name."""
    today = date(2026, 10, 19)

    assert report_filename("Hand  hygiene/2", "Hospital North/East", today) == (
        "Participants_Hand_hygiene-2_Hospital_North-East_19-10-2026.pdf"
    )
    assert report_filename("form_1", "  Ward\\B  ", today) == "Participants_form_1_Ward-B_19-10-2026.pdf"


def test_build_message():
    """Test one message with every recipient and the PDF attached."""
    mailer = ReportMailer(make_settings(), client=RecordingClient())

    message = mailer.build_message(
        ["a@x.org", "b@x.org"], "form_1", b"%PDF-1.7 test", "North", date(2026, 10, 19)
    ).get()

    assert message["from"]["email"] == "reports@example.org"
    assert message["subject"] == "Participation report: form_1 (North) - 19/10/2026"
    assert len(message["personalizations"]) == 1
    assert [to["email"] for to in message["personalizations"][0]["to"]] == ["a@x.org", "b@x.org"]

    attachment = message["attachments"][0]
    assert attachment["filename"] == "Participants_form_1_North_19-10-2026.pdf"
    assert attachment["type"] == "application/pdf"
    assert base64.b64decode(attachment["content"]) == b"%PDF-1.7 test"


def test_send_report():
    client = RecordingClient()
    mailer = ReportMailer(make_settings(), client=client)

    asyncio.run(mailer.send_report(["a@x.org"], "form_1", b"pdf"))

    assert len(client.messages) == 1


def test_send_report_rejected():
    """Test a non-success status raises DeliveryError."""
    mailer = ReportMailer(make_settings(), client=RecordingClient(status_code=400))

    with pytest.raises(DeliveryError):
        asyncio.run(mailer.send_report(["a@x.org"], "form_1", b"pdf"))


def test_send_report_transport_failure():
    """Test client exceptions surface as DeliveryError."""
    mailer = ReportMailer(make_settings(), client=RecordingClient(error=ConnectionError("refused")))

    with pytest.raises(DeliveryError) as exc_info:
        asyncio.run(mailer.send_report(["a@x.org"], "form_1", b"pdf"))

    assert "refused" in exc_info.value.message


def test_send_report_without_recipient():
    mailer = ReportMailer(make_settings(), client=RecordingClient())

    with pytest.raises(DeliveryError):
        asyncio.run(mailer.send_report([], "form_1", b"pdf"))


def test_sandbox_mode_does_not_send():
    client = RecordingClient()
    mailer = ReportMailer(make_settings(sendgrid_sandbox_mode=True), client=client)

    asyncio.run(mailer.send_report(["a@x.org"], "form_1", b"pdf"))

    assert client.messages == []


def test_settings_require_api_key_outside_sandbox():
    """Test missing SendGrid key is a configuration error."""
    with pytest.raises(ValueError):
        Settings(sendgrid_api_key="", sendgrid_sandbox_mode=False)
