"""
Tests for email templates and delivery recording.
"""
import asyncio
import logging

import pytest

from database.models import NotificationStatus, NotificationType
from services.auth_service import AuthService
from services.email_service import EmailService


class RecordingMail:
    """Stand-in for FastMail that records or rejects messages."""

    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    async def send_message(self, message):
        if self.fail:
            raise ConnectionError("SMTP server refused connection")
        self.messages.append(message)


class TestTemplates:
    @pytest.mark.parametrize("severity, color", [
        ("low", "#10b981"),
        ("moderate", "#f59e0b"),
        ("high", "#ef4444"),
    ])
    def test_analysis_complete(self, severity, color):
        template = EmailService.analysis_complete_email("Ana", "https://app.example.edu/analysis/7", severity)

        assert template.subject == f"Your Dental Analysis Results - {severity.upper()} Severity"
        assert color in template.html
        assert "https://app.example.edu/analysis/7" in template.text
        assert "Hi Ana," in template.text

    def test_analysis_complete_without_name(self):
        template = EmailService.analysis_complete_email(None, "https://x.example/analysis/1", "low")
        assert "Hi there," in template.text

    def test_names_are_escaped_in_html(self):
        template = EmailService.analysis_complete_email("<b>Ana</b>", "https://x.example/analysis/1", "low")
        assert "&lt;b&gt;Ana&lt;/b&gt;" in template.html
        assert "<b>Ana</b>" not in template.html

    def test_critical_finding(self):
        template = EmailService.critical_finding_email("Ana Reyes", "high", 3, "https://x.example/admin/student/4")

        assert template.subject == "[ALERT] Critical Finding - Ana Reyes"
        assert "Issues Detected: 3" in template.text
        assert "Severity Level: HIGH" in template.text
        assert "https://x.example/admin/student/4" in template.html


class TestSendEmail:
    def test_without_smtp_logs_preview(self, caplog):
        caplog.set_level(logging.INFO, logger="teeth_analysis")
        template = EmailService.critical_finding_email("Ana", "high", 1, "https://x.example")

        assert asyncio.run(EmailService.send_email("admin@example.edu", template)) is True
        assert "[EMAIL] To: admin@example.edu | Subject: [ALERT] Critical Finding - Ana" in caplog.text

    def test_sends_html_through_mail_client(self):
        mail = RecordingMail()
        template = EmailService.analysis_complete_email("Ana", "https://x.example/analysis/1", "low")

        assert asyncio.run(EmailService.send_email("ana@example.edu", template, mail)) is True
        (message,) = mail.messages
        assert message.subject == template.subject
        assert [getattr(r, "email", r) for r in message.recipients] == ["ana@example.edu"]

    def test_smtp_failure_returns_false(self):
        template = EmailService.analysis_complete_email("Ana", "https://x.example/analysis/1", "low")
        assert asyncio.run(EmailService.send_email("ana@example.edu", template, RecordingMail(fail=True))) is False


class TestNotify:
    @pytest.fixture
    def user(self, db_session):
        return AuthService.upsert_user(db_session, "student-1", email="ana@example.edu")

    def test_records_sent_notification(self, db_session, user):
        template = EmailService.analysis_complete_email("Ana", "https://x.example/analysis/1", "low")
        notification = asyncio.run(EmailService.notify(
            db_session, user.id, "ana@example.edu", NotificationType.ANALYSIS_COMPLETE, template
        ))

        assert notification.id is not None
        assert notification.status == NotificationStatus.SENT
        assert notification.sent_at is not None
        assert notification.submission_id is None

    def test_records_failed_notification(self, db_session, user):
        template = EmailService.analysis_complete_email("Ana", "https://x.example/analysis/1", "low")
        notification = asyncio.run(EmailService.notify(
            db_session, user.id, "ana@example.edu", NotificationType.ANALYSIS_COMPLETE, template,
            fm=RecordingMail(fail=True),
        ))

        assert notification.status == NotificationStatus.FAILED
        assert notification.sent_at is None
