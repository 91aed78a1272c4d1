"""
Admin dashboard APIs (admin role only).

Every route on this router is gated by ``require_admin``.
"""
import csv
import io
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from database.models import User, SubmissionStatus, Severity, AdminLog
from auth.dependencies import get_db_session, require_admin
from services.auth_service import AuthService
from services.student_service import StudentService
from services.submission_service import SubmissionService
from services.analytics_service import AnalyticsService, EMPTY_SEVERITY_DISTRIBUTION
from services.audit_service import AuditService
from routers.auth import UserResponse, user_to_response
from routers.student import ProfileResponse, profile_to_response
from routers.submissions import SubmissionResponse, get_storage, submission_to_response


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class StudentSummary(BaseModel):
    """Student row for admin listings."""
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    createdAt: str
    studentId: Optional[str] = None
    course: Optional[str] = None
    yearLevel: Optional[int] = None


class StudentDetailResponse(BaseModel):
    """Student account, profile and recent submissions."""
    user: UserResponse
    profile: Optional[ProfileResponse] = None
    submissions: List[SubmissionResponse]


class SeverityDistribution(BaseModel):
    low: int
    moderate: int
    high: int


class AnalysisStats(BaseModel):
    totalAnalyses: int
    severityDistribution: SeverityDistribution
    commonIssues: List[List]  # [issueType, count]


class AnalyticsSummary(BaseModel):
    totalStudents: int
    totalSubmissions: int
    analysisStats: Optional[AnalysisStats] = None


class AdminLogEntry(BaseModel):
    id: int
    adminId: int
    action: str
    targetUserId: Optional[int] = None
    details: Optional[dict] = None
    createdAt: str


def _student_summary(row: dict) -> StudentSummary:
    return StudentSummary(**{**row, "createdAt": row["createdAt"].isoformat()})


def _parse_status(value: Optional[str]) -> Optional[SubmissionStatus]:
    if not value:
        return None
    try:
        return SubmissionStatus(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status. Allowed: {', '.join(s.value for s in SubmissionStatus)}",
        )


def _parse_severity(value: Optional[str]) -> Optional[Severity]:
    if not value:
        return None
    try:
        return Severity(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid severity. Allowed: {', '.join(s.value for s in Severity)}",
        )


def _date_details(start_date: Optional[datetime], end_date: Optional[datetime]) -> dict:
    return {
        "startDate": start_date.isoformat() if start_date else None,
        "endDate": end_date.isoformat() if end_date else None,
    }


# ============================================================================
# Students
# ============================================================================

@router.get("/students", response_model=List[StudentSummary])
async def list_students(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db_session)
):
    """All students, newest first."""
    return [_student_summary(row) for row in StudentService.list_students(db, limit=limit, offset=offset)]


@router.get("/students/search", response_model=List[StudentSummary])
async def search_students(
    query: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db_session)
):
    """Students whose student ID contains the query."""
    rows = StudentService.search_students(db, query, limit=limit, offset=offset)
    return [_student_summary(row) for row in rows]


@router.get("/students/filter", response_model=List[StudentSummary])
async def filter_students(
    request: Request,
    course: Optional[str] = Query(None),
    yearLevel: Optional[int] = Query(None, ge=1, le=6),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Students by course and/or year level."""
    AuditService.log_from_request(
        db, request, current_user.id, "filter_students",
        details={"course": course, "yearLevel": yearLevel},
    )
    rows = StudentService.filter_students(db, course=course, year_level=yearLevel, limit=limit, offset=offset)
    return [_student_summary(row) for row in rows]


@router.get("/students/{user_id}", response_model=StudentDetailResponse)
async def get_student(
    user_id: int,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """A student's account, profile and latest 100 submissions."""
    user = AuthService.get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    profile = StudentService.get_profile(db, user_id)
    submissions = SubmissionService.list_for_user(db, user_id, limit=100)

    AuditService.log_from_request(db, request, current_user.id, "view_student_profile", target_user_id=user_id)

    return StudentDetailResponse(
        user=user_to_response(user),
        profile=profile_to_response(profile) if profile else None,
        submissions=[submission_to_response(s, storage) for s in submissions],
    )


# ============================================================================
# Submissions
# ============================================================================

@router.get("/submissions", response_model=List[SubmissionResponse])
async def list_submissions(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """All submissions, newest first."""
    return [submission_to_response(s, storage) for s in SubmissionService.list_all(db, limit=limit, offset=offset)]


@router.get("/submissions/filter", response_model=List[SubmissionResponse])
async def filter_submissions(
    request: Request,
    userId: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    severity: Optional[str] = Query(None),
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session),
    storage=Depends(get_storage)
):
    """Submissions by owner, status, analysis severity and creation date range."""
    parsed_status = _parse_status(status_filter)
    parsed_severity = _parse_severity(severity)

    AuditService.log_from_request(
        db, request, current_user.id, "filter_submissions",
        details={
            "userId": userId,
            "status": status_filter,
            "severity": severity,
            **_date_details(startDate, endDate),
            "limit": limit,
            "offset": offset,
        },
    )

    submissions = SubmissionService.filter_submissions(
        db,
        user_id=userId,
        status_filter=parsed_status,
        severity=parsed_severity,
        start_date=startDate,
        end_date=endDate,
        limit=limit,
        offset=offset,
    )
    return [submission_to_response(s, storage) for s in submissions]


# ============================================================================
# Analytics
# ============================================================================

@router.get("/analytics/summary", response_model=AnalyticsSummary)
async def analytics_summary(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Student and submission totals plus analysis statistics."""
    summary = AnalyticsSummary(
        totalStudents=StudentService.count_students(db),
        totalSubmissions=SubmissionService.count_submissions(db),
        analysisStats=AnalyticsService.get_analysis_stats(db),
    )
    AnalyticsService.track_event(db, "admin_dashboard_viewed", user_id=current_user.id)
    return summary


@router.get("/analytics/issue-distribution")
async def issue_distribution(db: Session = Depends(get_db_session)):
    """Six most common issue types as [issueType, count] pairs."""
    stats = AnalyticsService.get_analysis_stats(db)
    return stats["commonIssues"] if stats else []


@router.get("/analytics/severity-distribution", response_model=SeverityDistribution)
async def severity_distribution(db: Session = Depends(get_db_session)):
    """Count of analyses per overall severity."""
    stats = AnalyticsService.get_analysis_stats(db)
    return stats["severityDistribution"] if stats else dict(EMPTY_SEVERITY_DISTRIBUTION)


# ============================================================================
# Reports and logs
# ============================================================================

@router.get("/reports/export-csv")
async def export_csv(
    request: Request,
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Export submissions (optionally within a date range) as CSV."""
    submissions = SubmissionService.filter_submissions(
        db, start_date=startDate, end_date=endDate, limit=None
    )

    AuditService.log_from_request(
        db, request, current_user.id, "export_csv", details=_date_details(startDate, endDate)
    )

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(["ID", "User ID", "Status", "Created At"])
    for submission in submissions:
        writer.writerow([
            submission.id,
            submission.user_id,
            submission.status.value,
            submission.created_at.isoformat(),
        ])

    return Response(
        content=output.getvalue(),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=submissions_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        },
    )


@router.get("/logs", response_model=List[AdminLogEntry])
async def list_admin_logs(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """The calling admin's own log entries, newest first."""
    logs = AuditService.list_admin_logs(db, current_user.id, limit=limit, offset=offset)
    return [_log_entry(log) for log in logs]


def _log_entry(log: AdminLog) -> AdminLogEntry:
    return AdminLogEntry(
        id=log.id,
        adminId=log.admin_id,
        action=log.action,
        targetUserId=log.target_user_id,
        details=log.details,
        createdAt=log.created_at.isoformat(),
    )
