"""
Tests for the analysis job: status transitions, result storage, failure
handling and notifications.
"""
import asyncio
import logging

import pytest
from fastapi import HTTPException

import config
from conftest import jpeg_bytes
from core.dental_analyzer import DentalAnalyzer
from database.models import (
    AnalysisResult, AnalyticsEvent, EmailNotification, NotificationStatus,
    NotificationType, SubmissionStatus, UserRole,
)
from services.analysis_service import run_analysis, run_analysis_job
from services.auth_service import AuthService
from services.email_service import EmailService
from services.submission_service import SubmissionService


class StatusSpyAnalyzer(DentalAnalyzer):
    """Records the submission status seen while the model runs."""

    def __init__(self, db, submission_id):
        super().__init__(min_delay=0, max_delay=0)
        self.db = db
        self.submission_id = submission_id
        self.seen_status = None

    async def analyze(self, image_url, image_key):
        self.seen_status = SubmissionService.get_submission(self.db, self.submission_id).status
        return await super().analyze(image_url, image_key)


class ExplodingAnalyzer(DentalAnalyzer):
    async def analyze(self, image_url, image_key):
        raise RuntimeError("model crashed")


@pytest.fixture
def student(db_session):
    return AuthService.upsert_user(db_session, "student-1", name="Ana Reyes", email="ana@example.edu")


@pytest.fixture
def admin(db_session):
    user = AuthService.upsert_user(db_session, "admin-1", name="Dr. Admin", email="admin@example.edu")
    return AuthService.set_role(db_session, user, UserRole.ADMIN)


@pytest.fixture
def make_submission(db_session, storage, student):
    def _make(mime_type="image/jpeg", file_name="molars.jpg"):
        data = jpeg_bytes(2048)
        return SubmissionService.create_submission(
            db_session, storage,
            user_id=student.id,
            file_name=file_name,
            data=data,
            mime_type=mime_type,
            file_size=len(data),
        )
    return _make


def _notifications(db):
    return db.query(EmailNotification).order_by(EmailNotification.id).all()


class TestRunAnalysis:
    def test_pending_to_completed_with_one_result(self, db_session, storage, make_submission):
        submission = make_submission()
        spy = StatusSpyAnalyzer(db_session, submission.id)

        result = asyncio.run(run_analysis(db_session, submission.id, spy, storage=storage))

        assert spy.seen_status == SubmissionStatus.ANALYZING
        assert submission.status == SubmissionStatus.COMPLETED
        assert result.submission_id == submission.id
        assert result.user_id == submission.user_id
        assert result.disclaimer == config.ANALYSIS_DISCLAIMER
        assert db_session.query(AnalysisResult).filter(AnalysisResult.submission_id == submission.id).count() == 1

    def test_tracks_completion_event(self, db_session, storage, make_submission, fixed_analyzer, make_issue):
        submission = make_submission()
        asyncio.run(run_analysis(db_session, submission.id, fixed_analyzer([make_issue(severity="moderate")])))

        event = db_session.query(AnalyticsEvent).filter(AnalyticsEvent.event_type == "analysis_completed").one()
        assert event.extra_metadata == {"submissionId": submission.id, "severity": "moderate"}

    def test_missing_submission(self, db_session, analyzer):
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(run_analysis(db_session, 404, analyzer))
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("current", [
        SubmissionStatus.ANALYZING, SubmissionStatus.COMPLETED, SubmissionStatus.FAILED,
    ])
    def test_only_pending_can_be_analyzed(self, db_session, analyzer, make_submission, current):
        submission = make_submission()
        SubmissionService.update_status(db_session, submission, current)

        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(run_analysis(db_session, submission.id, analyzer))
        assert exc_info.value.status_code == 409
        assert submission.status == current

    def test_invalid_image_fails_without_result(self, db_session, analyzer, make_submission):
        submission = make_submission(mime_type="image/gif", file_name="a.gif")

        assert asyncio.run(run_analysis(db_session, submission.id, analyzer)) is None
        assert submission.status == SubmissionStatus.FAILED
        assert db_session.query(AnalysisResult).count() == 0

    def test_image_missing_from_storage_fails(self, db_session, storage, analyzer, make_submission):
        submission = make_submission()
        storage.delete(submission.image_key)

        assert asyncio.run(run_analysis(db_session, submission.id, analyzer, storage=storage)) is None
        assert submission.status == SubmissionStatus.FAILED

    def test_analyzer_error_marks_failed_and_propagates(self, db_session, make_submission):
        submission = make_submission()

        with pytest.raises(RuntimeError):
            asyncio.run(run_analysis(db_session, submission.id, ExplodingAnalyzer(min_delay=0, max_delay=0)))
        assert submission.status == SubmissionStatus.FAILED
        assert db_session.query(AnalysisResult).count() == 0

    def test_notification_error_keeps_completed_status(
        self, db_session, make_submission, fixed_analyzer, make_issue, monkeypatch
    ):
        async def broken_notify(*args, **kwargs):
            raise RuntimeError("mail queue unavailable")

        monkeypatch.setattr(EmailService, "notify", staticmethod(broken_notify))
        submission = make_submission()

        with pytest.raises(RuntimeError):
            asyncio.run(run_analysis(db_session, submission.id, fixed_analyzer([make_issue()])))
        assert submission.status == SubmissionStatus.COMPLETED
        assert db_session.query(AnalysisResult).count() == 1


class TestNotifications:
    def test_owner_notified_for_low_severity(self, db_session, student, admin, make_submission, fixed_analyzer, make_issue):
        submission = make_submission()
        asyncio.run(run_analysis(db_session, submission.id, fixed_analyzer([make_issue(severity="low")])))

        notifications = _notifications(db_session)
        assert [(n.recipient_email, n.notification_type) for n in notifications] == [
            ("ana@example.edu", NotificationType.ANALYSIS_COMPLETE),
        ]
        assert notifications[0].status == NotificationStatus.SENT
        assert notifications[0].sent_at is not None
        assert notifications[0].subject == "Your Dental Analysis Results - LOW Severity"

    def test_high_severity_alerts_admins(
        self, db_session, student, admin, alert_email, make_submission, fixed_analyzer, make_issue
    ):
        submission = make_submission()
        asyncio.run(run_analysis(
            db_session, submission.id, fixed_analyzer([make_issue(severity="high"), make_issue("crack", "high")])
        ))

        notifications = _notifications(db_session)
        assert [(n.recipient_email, n.user_id, n.notification_type) for n in notifications] == [
            ("ana@example.edu", student.id, NotificationType.ANALYSIS_COMPLETE),
            ("admin@example.edu", admin.id, NotificationType.CRITICAL_FINDING),
            (alert_email, student.id, NotificationType.CRITICAL_FINDING),
        ]
        assert all(n.status == NotificationStatus.SENT for n in notifications)
        assert all(n.submission_id == submission.id for n in notifications)
        assert notifications[1].subject == "[ALERT] Critical Finding - Ana Reyes"

    def test_alert_address_shared_with_admin_is_sent_once(
        self, db_session, student, admin, make_submission, fixed_analyzer, make_issue, monkeypatch
    ):
        monkeypatch.setattr(config, "ADMIN_ALERT_EMAIL", "admin@example.edu")
        submission = make_submission()
        asyncio.run(run_analysis(db_session, submission.id, fixed_analyzer([make_issue(severity="high")])))

        critical = [n for n in _notifications(db_session) if n.notification_type == NotificationType.CRITICAL_FINDING]
        assert [n.recipient_email for n in critical] == ["admin@example.edu"]

    def test_owner_without_email_gets_nothing(self, db_session, storage, analyzer):
        user = AuthService.upsert_user(db_session, "student-x")
        data = jpeg_bytes(100)
        submission = SubmissionService.create_submission(
            db_session, storage, user_id=user.id, file_name="x.jpg",
            data=data, mime_type="image/jpeg", file_size=len(data),
        )
        asyncio.run(run_analysis(db_session, submission.id, analyzer))
        assert [n for n in _notifications(db_session) if n.user_id == user.id] == []


class TestRunAnalysisJob:
    def test_job_analyzes_in_own_session(self, database, db_session, storage, analyzer, make_submission):
        submission = make_submission()
        asyncio.run(run_analysis_job(database, submission.id, analyzer, storage))

        db_session.expire_all()
        assert SubmissionService.get_submission(db_session, submission.id).status == SubmissionStatus.COMPLETED

    def test_job_logs_instead_of_raising(self, database, db_session, make_submission, caplog):
        caplog.set_level(logging.INFO, logger="teeth_analysis")
        submission = make_submission()

        asyncio.run(run_analysis_job(database, submission.id, ExplodingAnalyzer(min_delay=0, max_delay=0)))
        asyncio.run(run_analysis_job(database, 999, ExplodingAnalyzer(min_delay=0, max_delay=0)))

        assert f"Background analysis failed for submission {submission.id}" in caplog.text
        assert "Background analysis skipped for submission 999" in caplog.text
        db_session.expire_all()
        assert SubmissionService.get_submission(db_session, submission.id).status == SubmissionStatus.FAILED
