"""
Report delivery by email.

Sends rendered participation reports through SendGrid. The mailer only
delivers: recording the outcome in the Export Log is the caller's job.
"""

import asyncio
import base64
from datetime import date
from typing import List, Optional

import sendgrid
from sendgrid.helpers.mail import (
    Mail, Email, To, Attachment, FileContent, FileName, FileType, Disposition
)
from loguru import logger

from config.constants import PDF_CONTENT_TYPE, REPORT_DATE_FORMAT
from config.settings import Settings, get_settings
from core.exceptions import DeliveryError


def report_subject(course_name: str, institution: Optional[str], generated_on: date) -> str:
    today = generated_on.strftime(REPORT_DATE_FORMAT)
    if institution:
        return f"Participation report: {course_name} ({institution}) - {today}"
    return f"Participation report: {course_name} - {today}"


def _filename_part(text: str) -> str:
    """Whitespace runs become "_", path separators become "-"."""
    return "_".join(text.replace("/", "-").replace("\\", "-").split())


def report_filename(course_name: str, institution: Optional[str], generated_on: date) -> str:
    today = generated_on.strftime(REPORT_DATE_FORMAT).replace("/", "-")
    base_name = _filename_part(course_name)
    if institution:
        return f"Participants_{base_name}_{_filename_part(institution)}_{today}.pdf"
    return f"Participants_{base_name}_{today}.pdf"


class ReportMailer:
    """SendGrid wrapper for participation reports."""

    def __init__(self, settings: Optional[Settings] = None, client=None):
        self.settings = settings or get_settings()
        self.client = client or sendgrid.SendGridAPIClient(api_key=self.settings.sendgrid_api_key)

    def build_message(
        self,
        recipients: List[str],
        course_name: str,
        pdf_bytes: bytes,
        institution: Optional[str] = None,
        generated_on: Optional[date] = None
    ) -> Mail:
        """
        Build one message addressed to every recipient, with the PDF attached.

        All recipients share a single personalization, so they appear
        together in the "to" field of one email.
        """
        generated_on = generated_on or date.today()
        today = generated_on.strftime(REPORT_DATE_FORMAT)

        message = Mail(
            from_email=Email(self.settings.sendgrid_sender, self.settings.sendgrid_sender_name),
            to_emails=[To(address) for address in recipients],
            subject=report_subject(course_name, institution, generated_on),
            plain_text_content=(
                f"Please find attached the participation report of {today}.\n\n"
                "Kind regards,"
            )
        )
        message.attachment = Attachment(
            FileContent(base64.b64encode(pdf_bytes).decode("ascii")),
            FileName(report_filename(course_name, institution, generated_on)),
            FileType(PDF_CONTENT_TYPE),
            Disposition("attachment")
        )
        return message

    async def send_report(
        self,
        recipients: List[str],
        course_name: str,
        pdf_bytes: bytes,
        institution: Optional[str] = None,
        generated_on: Optional[date] = None
    ) -> None:
        """
        Email a report.

        Args:
            recipients: Addresses placed together in the "to" field
            course_name: Course display name (subject and filename)
            pdf_bytes: Rendered report
            institution: Sub-audience, if the report is filtered
            generated_on: Report date (default: today)

        Raises:
            DeliveryError: No recipient, transport failure or rejected message
        """
        if not recipients:
            raise DeliveryError("No recipient to send the report to")

        message = self.build_message(recipients, course_name, pdf_bytes, institution, generated_on)

        if self.settings.sendgrid_sandbox_mode:
            logger.info(
                f"[SANDBOX] Would send report for {course_name} "
                f"to {len(recipients)} recipient(s)"
            )
            return

        try:
            response = await asyncio.to_thread(self.client.send, message)
        except Exception as e:
            raise DeliveryError(f"Email delivery failed: {e}", {'recipients': len(recipients)}) from e

        if response.status_code not in (200, 202):
            raise DeliveryError(
                f"Email delivery rejected with status {response.status_code}",
                {'recipients': len(recipients)}
            )

        logger.info(f"Report email sent to {len(recipients)} recipient(s), status: {response.status_code}")
