"""
Submission service: image intake, retrieval, listing and deletion.
"""
import time
from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from database.models import (
    Submission, SubmissionStatus, ImageQuality, AnalysisResult, Severity
)
from core.validators import sanitize_filename
from core.logger import logger


def build_image_key(user_id: int, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """Storage key for an uploaded image: submissions/{user_id}/{epoch_ms}-{file_name}."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"submissions/{user_id}/{timestamp_ms}-{sanitize_filename(file_name)}"


class SubmissionService:
    """Service for submission operations."""

    @staticmethod
    def create_submission(
        db: Session,
        storage,
        user_id: int,
        file_name: str,
        data: bytes,
        mime_type: str,
        file_size: int,
        image_quality: ImageQuality = ImageQuality.GOOD,
    ) -> Submission:
        """
        Store the image and insert a pending submission.

        The storage write and the insert are not transactional: if the insert
        fails the stored object is left behind.

        Args:
            db: Database session
            storage: Image store (S3Client or LocalStorage)
            user_id: Uploading user
            file_name: Client-supplied file name
            data: Decoded image bytes
            mime_type: Image MIME type
            file_size: Client-declared size in bytes
            image_quality: Self-reported image quality

        Returns:
            Created Submission
        """
        image_key = build_image_key(user_id, file_name)
        try:
            image_url = storage.put(image_key, data, mime_type)
        except Exception:
            logger.error(f"Failed to store image {image_key}", exc_info=True)
            raise

        submission = Submission(
            user_id=user_id,
            image_key=image_key,
            image_url=image_url,
            file_name=file_name,
            mime_type=mime_type,
            file_size=file_size,
            image_quality=image_quality,
            status=SubmissionStatus.PENDING,
        )
        try:
            db.add(submission)
            db.commit()
            db.refresh(submission)
        except Exception:
            db.rollback()
            logger.error(f"Failed to create submission for stored image {image_key}", exc_info=True)
            raise

        logger.info(f"Submission {submission.id} created for user {user_id}: {image_key} ({file_size} bytes)")
        return submission

    @staticmethod
    def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
        """Get submission by ID."""
        return db.query(Submission).filter(Submission.id == submission_id).first()

    @staticmethod
    def get_owned_submission(db: Session, submission_id: int, user_id: int) -> Submission:
        """
        Get a submission owned by ``user_id``.

        Raises:
            HTTPException: 404 if missing or owned by someone else
        """
        submission = SubmissionService.get_submission(db, submission_id)
        if submission is None or submission.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
        return submission

    @staticmethod
    def get_analysis(db: Session, submission_id: int) -> Optional[AnalysisResult]:
        """Analysis result for a submission, if any."""
        return db.query(AnalysisResult).filter(AnalysisResult.submission_id == submission_id).first()

    @staticmethod
    def list_for_user(db: Session, user_id: int, limit: int = 20, offset: int = 0) -> List[Submission]:
        """A user's submissions, newest first."""
        return (
            db.query(Submission)
            .filter(Submission.user_id == user_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def update_status(db: Session, submission: Submission, new_status: SubmissionStatus) -> Submission:
        """Set and commit a submission's status."""
        old_status = submission.status
        submission.status = new_status
        submission.updated_at = datetime.utcnow()
        db.commit()
        logger.info(
            f"Submission {submission.id}: {getattr(old_status, 'value', old_status)} -> {new_status.value}"
        )
        return submission

    @staticmethod
    def delete_submission(db: Session, submission: Submission, storage=None) -> None:
        """
        Delete a submission and its analysis result.

        Email notifications that referenced it are kept with submission_id
        cleared. The stored image is removed when ``storage`` is given; a
        storage failure is logged and does not undo the delete.
        """
        submission_id = submission.id
        image_key = submission.image_key
        for notification in submission.email_notifications:
            notification.submission_id = None
        db.delete(submission)
        db.commit()
        logger.info(f"Deleted submission {submission_id}")

        if storage is not None:
            try:
                storage.delete(image_key)
            except Exception as e:
                logger.warning(f"Submission {submission_id} deleted but image {image_key} was not removed: {e}")

    @staticmethod
    def list_all(db: Session, limit: int = 50, offset: int = 0) -> List[Submission]:
        """All submissions, newest first."""
        return (
            db.query(Submission)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def filter_submissions(
        db: Session,
        user_id: Optional[int] = None,
        status_filter: Optional[SubmissionStatus] = None,
        severity: Optional[Severity] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = 50,
        offset: int = 0
    ) -> List[Submission]:
        """
        Submissions matching every given filter, newest first.

        Args:
            db: Database session
            user_id: Owner
            status_filter: Processing status
            severity: Overall severity of the submission's analysis
            start_date: Created at or after
            end_date: Created at or before
            limit: Maximum rows (None for all)
            offset: Rows to skip

        Returns:
            List of Submission
        """
        query = db.query(Submission)
        if user_id:
            query = query.filter(Submission.user_id == user_id)
        if status_filter:
            query = query.filter(Submission.status == status_filter)
        if severity:
            query = query.join(AnalysisResult, AnalysisResult.submission_id == Submission.id).filter(
                AnalysisResult.overall_severity == severity
            )
        if start_date:
            query = query.filter(Submission.created_at >= start_date)
        if end_date:
            query = query.filter(Submission.created_at <= end_date)

        query = query.order_by(Submission.created_at.desc(), Submission.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def count_submissions(db: Session, user_id: Optional[int] = None) -> int:
        query = db.query(Submission)
        if user_id:
            query = query.filter(Submission.user_id == user_id)
        return query.count()
