"""
Image submission APIs (authenticated users, own submissions only).
"""
from typing import Optional, List, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from database.models import User, Submission, AnalysisResult, ImageQuality
from auth.dependencies import get_current_user, get_db_session
from services.submission_service import SubmissionService
from services.analytics_service import AnalyticsService
from services.analysis_service import run_analysis, run_analysis_job
from core.validators import (
    sanitize_filename,
    validate_image_mime_type,
    validate_file_size,
    decode_base64_image,
)
from core.logger import logger
import config


router = APIRouter(prefix="/api/submissions", tags=["submissions"])


def get_storage(request: Request):
    """Image store configured on the application."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage not initialized")
    return storage


class UploadRequest(BaseModel):
    """Image upload request (image bytes as base64)."""
    fileName: str = Field(..., min_length=1, max_length=255)
    fileSize: int
    mimeType: str
    imageQuality: Literal["good", "fair", "poor"] = "good"
    imageBase64: str


class UploadResponse(BaseModel):
    """Upload response."""
    submissionId: int
    imageUrl: str


class SubmissionResponse(BaseModel):
    """Submission record."""
    id: int
    userId: int
    imageKey: str
    imageUrl: str
    fileName: str
    mimeType: str
    fileSize: int
    imageQuality: Optional[str] = None
    status: str
    createdAt: str
    updatedAt: str


class AnalysisResponse(BaseModel):
    """Analysis result for a submission."""
    id: int
    submissionId: int
    userId: int
    detectedIssues: List[dict]
    overallSeverity: str
    recommendations: List[dict]
    disclaimer: str
    mlModelVersion: str
    processingTime: int
    createdAt: str


class SubmissionDetailsResponse(BaseModel):
    """Submission with its analysis (null until analyzed)."""
    submission: SubmissionResponse
    analysis: Optional[AnalysisResponse] = None


class DeleteResponse(BaseModel):
    success: bool


def submission_to_response(submission: Submission, storage=None) -> SubmissionResponse:
    """Serialize a submission. With a storage, the image URL is built fresh for the read."""
    image_url = storage.url_for(submission.image_key) if storage is not None else submission.image_url
    return SubmissionResponse(
        id=submission.id,
        userId=submission.user_id,
        imageKey=submission.image_key,
        imageUrl=image_url,
        fileName=submission.file_name,
        mimeType=submission.mime_type,
        fileSize=submission.file_size,
        imageQuality=submission.image_quality.value if submission.image_quality else None,
        status=submission.status.value,
        createdAt=submission.created_at.isoformat(),
        updatedAt=submission.updated_at.isoformat(),
    )


def analysis_to_response(result: Optional[AnalysisResult]) -> Optional[AnalysisResponse]:
    if result is None:
        return None
    return AnalysisResponse(
        id=result.id,
        submissionId=result.submission_id,
        userId=result.user_id,
        detectedIssues=result.detected_issues or [],
        overallSeverity=result.overall_severity.value,
        recommendations=result.recommendations or [],
        disclaimer=result.disclaimer,
        mlModelVersion=result.ml_model_version,
        processingTime=result.processing_time,
        createdAt=result.created_at.isoformat(),
    )


@router.post("", response_model=UploadResponse)
async def upload_submission(
    upload: UploadRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """
    Upload a dental image for analysis.

    The image is stored, a pending submission is created and, when automatic
    analysis is enabled, analysis runs after the response is sent.
    """
    max_size_bytes = config.MAX_IMAGE_SIZE_MB * 1024 * 1024

    is_valid_size, size_error = validate_file_size(upload.fileSize, max_size_bytes)
    if not is_valid_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=size_error)

    is_valid_type, type_error = validate_image_mime_type(upload.mimeType, config.ALLOWED_IMAGE_MIME_TYPES)
    if not is_valid_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=type_error)

    try:
        sanitize_filename(upload.fileName)
        image_bytes = decode_base64_image(upload.imageBase64)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # The declared size is client-supplied; the decoded payload must also fit
    is_valid_size, size_error = validate_file_size(len(image_bytes), max_size_bytes)
    if not is_valid_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=size_error)

    logger.info(
        f"Received image upload from user {current_user.id}: {upload.fileName} "
        f"({len(image_bytes) / (1024 * 1024):.2f} MB)"
    )

    submission = SubmissionService.create_submission(
        db,
        storage,
        user_id=current_user.id,
        file_name=upload.fileName,
        data=image_bytes,
        mime_type=upload.mimeType,
        file_size=upload.fileSize,
        image_quality=ImageQuality(upload.imageQuality),
    )

    AnalyticsService.track_event(
        db,
        "submission_uploaded",
        user_id=current_user.id,
        metadata={"submissionId": submission.id, "fileSize": upload.fileSize},
    )

    if request.app.state.auto_analyze:
        background_tasks.add_task(
            run_analysis_job,
            request.app.state.db,
            submission.id,
            request.app.state.analyzer,
            storage,
            getattr(request.app.state, "mail", None),
        )
        logger.info(f"Analysis scheduled for submission {submission.id}")

    return UploadResponse(submissionId=submission.id, imageUrl=submission.image_url)


@router.get("", response_model=List[SubmissionResponse])
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """Own submissions, newest first."""
    submissions = SubmissionService.list_for_user(db, current_user.id, limit=limit, offset=offset)
    return [submission_to_response(s, storage) for s in submissions]


@router.get("/{submission_id}", response_model=SubmissionDetailsResponse)
async def get_details(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """Submission and its analysis. 404 if missing or owned by another user."""
    submission = SubmissionService.get_owned_submission(db, submission_id, current_user.id)
    analysis = SubmissionService.get_analysis(db, submission.id)
    return SubmissionDetailsResponse(
        submission=submission_to_response(submission, storage),
        analysis=analysis_to_response(analysis),
    )


@router.delete("/{submission_id}", response_model=DeleteResponse)
async def delete_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """Delete own submission, its analysis and its stored image."""
    submission = SubmissionService.get_owned_submission(db, submission_id, current_user.id)
    SubmissionService.delete_submission(db, submission, storage=storage)
    return DeleteResponse(success=True)


@router.post("/{submission_id}/analyze", response_model=SubmissionDetailsResponse)
async def analyze_submission(
    submission_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """
    Run analysis on own pending submission and wait for the result.
    409 if the submission is not pending.
    """
    submission = SubmissionService.get_owned_submission(db, submission_id, current_user.id)
    result = await run_analysis(
        db,
        submission.id,
        request.app.state.analyzer,
        storage=storage,
        fm=getattr(request.app.state, "mail", None),
    )
    return SubmissionDetailsResponse(
        submission=submission_to_response(submission, storage),
        analysis=analysis_to_response(result),
    )
