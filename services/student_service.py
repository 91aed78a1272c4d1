"""
Student profile management and admin student queries.
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status

from database.models import User, UserRole, StudentProfile
from core.logger import logger

PROFILE_FIELDS = (
    "first_name", "middle_name", "surname", "student_id",
    "age", "address", "course", "year_level",
)
REQUIRED_FIELDS = ("first_name", "surname")


class StudentService:
    """Service for student profile operations."""

    @staticmethod
    def get_profile(db: Session, user_id: int) -> Optional[StudentProfile]:
        """Get a user's student profile."""
        return db.query(StudentProfile).filter(StudentProfile.user_id == user_id).first()

    @staticmethod
    def create_profile(db: Session, user_id: int, data: Dict[str, Any]) -> StudentProfile:
        """
        Create the student profile for a user.

        Args:
            db: Database session
            user_id: Owning user
            data: Profile fields (snake_case keys from PROFILE_FIELDS)

        Returns:
            Created StudentProfile

        Raises:
            HTTPException: 409 if the user already has a profile or student_id is taken
        """
        if StudentService.get_profile(db, user_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile already exists")

        student_id = data.get("student_id")
        if db.query(StudentProfile).filter(StudentProfile.student_id == student_id).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Student ID already registered")

        profile = StudentProfile(user_id=user_id, **{k: v for k, v in data.items() if k in PROFILE_FIELDS})
        db.add(profile)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent create for the same user or student_id
            db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile already exists")
        db.refresh(profile)
        logger.info(f"Created student profile for user {user_id} (student ID: {student_id})")
        return profile

    @staticmethod
    def update_profile(db: Session, user_id: int, updates: Dict[str, Any]) -> StudentProfile:
        """
        Apply partial updates to a user's profile.

        Raises:
            HTTPException: 404 if the user has no profile
        """
        profile = StudentService.get_profile(db, user_id)
        if not profile:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

        for field, value in updates.items():
            # student_id is fixed once registered
            if field not in PROFILE_FIELDS or field == "student_id":
                continue
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(profile, field, value)
        db.commit()
        db.refresh(profile)
        logger.info(f"Updated student profile for user {user_id}: {', '.join(sorted(updates)) or 'no changes'}")
        return profile

    # ------------------------------------------------------------------
    # Admin queries: students are users with role "user", profile optional
    # ------------------------------------------------------------------

    @staticmethod
    def _student_rows(query) -> List[Dict[str, Any]]:
        rows = []
        for user, profile in query.all():
            rows.append({
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "createdAt": user.created_at,
                "studentId": profile.student_id if profile else None,
                "course": profile.course if profile else None,
                "yearLevel": profile.year_level if profile else None,
            })
        return rows

    @staticmethod
    def _students_query(db: Session):
        return (
            db.query(User, StudentProfile)
            .outerjoin(StudentProfile, StudentProfile.user_id == User.id)
            .filter(User.role == UserRole.USER)
        )

    @staticmethod
    def list_students(db: Session, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """All students, newest accounts first."""
        query = StudentService._students_query(db).order_by(User.created_at.desc(), User.id.desc())
        return StudentService._student_rows(query.offset(offset).limit(limit))

    @staticmethod
    def search_students(db: Session, query_text: str, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Students whose student ID contains ``query_text``."""
        query = (
            StudentService._students_query(db)
            .filter(StudentProfile.student_id.contains(query_text, autoescape=True))
            .order_by(User.created_at.desc(), User.id.desc())
        )
        return StudentService._student_rows(query.offset(offset).limit(limit))

    @staticmethod
    def filter_students(
        db: Session,
        course: Optional[str] = None,
        year_level: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Students matching course and/or year level."""
        query = StudentService._students_query(db)
        if course:
            query = query.filter(StudentProfile.course == course)
        if year_level:
            query = query.filter(StudentProfile.year_level == year_level)
        query = query.order_by(User.created_at.desc(), User.id.desc())
        return StudentService._student_rows(query.offset(offset).limit(limit))

    @staticmethod
    def count_students(db: Session) -> int:
        return db.query(User).filter(User.role == UserRole.USER).count()
