"""
Analysis job: runs the dental analyzer over a pending submission and
records the result, analytics and notifications.
"""
from typing import Optional, TYPE_CHECKING

from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from database.models import (
    AnalysisResult, Submission, SubmissionStatus, Severity, User, UserRole, NotificationType
)
from core.dental_analyzer import validate_image_for_analysis
from core.logger import logger
from services.submission_service import SubmissionService
from services.analytics_service import AnalyticsService
from services.email_service import EmailService
import config

if TYPE_CHECKING:
    from fastapi_mail import FastMail
    from database.connection import Database
    from core.dental_analyzer import DentalAnalyzer


async def run_analysis(
    db: Session,
    submission_id: int,
    analyzer: "DentalAnalyzer",
    storage=None,
    fm: Optional["FastMail"] = None,
) -> Optional[AnalysisResult]:
    """
    Analyze a pending submission.

    Moves the submission pending -> analyzing -> completed (or failed) and
    stores exactly one AnalysisResult for it.

    Args:
        db: Database session
        submission_id: Submission to analyze
        analyzer: Analyzer producing an AnalysisOutcome
        storage: Image store; when given the image must exist in it
        fm: FastMail instance for notifications (None logs emails)

    Returns:
        The AnalysisResult, or None if the image failed validation

    Raises:
        HTTPException: 404 if the submission is missing, 409 if it is not pending
    """
    submission = SubmissionService.get_submission(db, submission_id)
    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    if submission.status != SubmissionStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Submission is {submission.status.value}, only pending submissions can be analyzed",
        )

    SubmissionService.update_status(db, submission, SubmissionStatus.ANALYZING)

    try:
        is_valid, message = validate_image_for_analysis(
            submission.image_url, submission.mime_type, submission.file_size
        )
        if is_valid and storage is not None and not storage.exists(submission.image_key):
            is_valid, message = False, "Image not found in storage."
        if not is_valid:
            logger.warning(f"Submission {submission_id} failed image validation: {message}")
            SubmissionService.update_status(db, submission, SubmissionStatus.FAILED)
            return None

        outcome = await analyzer.analyze(submission.image_url, submission.image_key)

        result = AnalysisResult(
            submission_id=submission.id,
            user_id=submission.user_id,
            detected_issues=outcome.detected_issues,
            overall_severity=Severity(outcome.overall_severity),
            recommendations=outcome.recommendations,
            disclaimer=config.ANALYSIS_DISCLAIMER,
            ml_model_version=outcome.ml_model_version,
            processing_time=outcome.processing_time,
        )
        db.add(result)
        SubmissionService.update_status(db, submission, SubmissionStatus.COMPLETED)
        db.refresh(result)

        AnalyticsService.track_event(
            db,
            "analysis_completed",
            user_id=submission.user_id,
            metadata={"submissionId": submission.id, "severity": outcome.overall_severity},
        )
        await send_analysis_notifications(db, submission, result, fm)
        return result
    except Exception:
        db.rollback()
        logger.error(f"Analysis failed for submission {submission_id}", exc_info=True)
        # A completed analysis stays completed even if a later step failed
        if submission.status != SubmissionStatus.COMPLETED:
            SubmissionService.update_status(db, submission, SubmissionStatus.FAILED)
        raise


async def send_analysis_notifications(
    db: Session,
    submission: Submission,
    result: AnalysisResult,
    fm: Optional["FastMail"] = None,
) -> int:
    """
    Email the owner that the analysis is ready and, for high severity,
    alert every admin with an email address plus ADMIN_ALERT_EMAIL.

    Returns:
        Number of notifications recorded
    """
    owner = db.query(User).filter(User.id == submission.user_id).first()
    severity = result.overall_severity.value
    sent = 0

    if owner is not None and owner.email:
        template = EmailService.analysis_complete_email(
            owner.name, f"{config.PUBLIC_BASE_URL}/analysis/{submission.id}", severity
        )
        await EmailService.notify(
            db, owner.id, owner.email, NotificationType.ANALYSIS_COMPLETE, template,
            submission_id=submission.id, fm=fm,
        )
        sent += 1

    if result.overall_severity != Severity.HIGH:
        return sent

    student_name = (owner.name if owner else None) or f"User {submission.user_id}"
    template = EmailService.critical_finding_email(
        student_name,
        severity,
        len(result.detected_issues or []),
        f"{config.PUBLIC_BASE_URL}/admin/student/{submission.user_id}",
    )

    # recipient email -> user id the notification is filed under
    recipients = {}
    admins = db.query(User).filter(User.role == UserRole.ADMIN, User.email.isnot(None)).all()
    for admin in admins:
        if admin.email:
            recipients.setdefault(admin.email, admin.id)
    if config.ADMIN_ALERT_EMAIL:
        recipients.setdefault(config.ADMIN_ALERT_EMAIL, submission.user_id)

    for email, user_id in recipients.items():
        await EmailService.notify(
            db, user_id, email, NotificationType.CRITICAL_FINDING, template,
            submission_id=submission.id, fm=fm,
        )
        sent += 1

    logger.info(f"Critical finding for submission {submission.id}: alerted {len(recipients)} recipient(s)")
    return sent


async def run_analysis_job(
    database: "Database",
    submission_id: int,
    analyzer: "DentalAnalyzer",
    storage=None,
    fm: Optional["FastMail"] = None,
):
    """
    Background entry point: analyze a submission in its own session.

    Runs after the upload response has been sent, so failures are logged
    here rather than raised to a caller.
    """
    logger.info(f"Background analysis started for submission {submission_id}")
    try:
        with database.get_session() as db:
            await run_analysis(db, submission_id, analyzer, storage=storage, fm=fm)
    except HTTPException as e:
        logger.warning(f"Background analysis skipped for submission {submission_id}: {e.detail}")
    except Exception as e:
        logger.error(f"Background analysis failed for submission {submission_id}: {e}")
