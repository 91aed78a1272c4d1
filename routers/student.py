"""
Student profile APIs (authenticated users, own profile only).
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, field_validator

from database.models import User, StudentProfile
from auth.dependencies import get_current_user, get_db_session
from services.student_service import StudentService
from services.analytics_service import AnalyticsService


router = APIRouter(prefix="/api/student", tags=["student"])


class ProfileCreate(BaseModel):
    """Create profile request."""
    firstName: str = Field(..., min_length=1, max_length=100)
    middleName: Optional[str] = Field(None, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)
    studentId: str = Field(..., min_length=1, max_length=50)
    age: Optional[int] = Field(None, ge=1, le=150)
    address: Optional[str] = None
    course: Optional[str] = Field(None, max_length=150)
    yearLevel: Optional[int] = Field(None, ge=1, le=6)


class ProfileUpdate(BaseModel):
    """Update profile request. Student ID cannot be changed."""
    firstName: Optional[str] = Field(None, min_length=1, max_length=100)
    middleName: Optional[str] = Field(None, max_length=100)
    surname: Optional[str] = Field(None, min_length=1, max_length=100)
    age: Optional[int] = Field(None, ge=1, le=150)
    address: Optional[str] = None
    course: Optional[str] = Field(None, max_length=150)
    yearLevel: Optional[int] = Field(None, ge=1, le=6)

    @field_validator("firstName", "surname")
    @classmethod
    def required_names_not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class ProfileResponse(BaseModel):
    """Student profile."""
    id: int
    userId: int
    firstName: str
    middleName: Optional[str] = None
    surname: str
    studentId: str
    age: Optional[int] = None
    address: Optional[str] = None
    course: Optional[str] = None
    yearLevel: Optional[int] = None
    createdAt: str
    updatedAt: str


# camelCase request field -> model column
FIELD_MAP = {
    "firstName": "first_name",
    "middleName": "middle_name",
    "surname": "surname",
    "studentId": "student_id",
    "age": "age",
    "address": "address",
    "course": "course",
    "yearLevel": "year_level",
}


def profile_to_response(profile: StudentProfile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        userId=profile.user_id,
        firstName=profile.first_name,
        middleName=profile.middle_name,
        surname=profile.surname,
        studentId=profile.student_id,
        age=profile.age,
        address=profile.address,
        course=profile.course,
        yearLevel=profile.year_level,
        createdAt=profile.created_at.isoformat(),
        updatedAt=profile.updated_at.isoformat(),
    )


@router.post("/profile", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    profile_data: ProfileCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """
    Create own student profile.
    Fails with 409 if a profile exists or the student ID is taken.
    """
    data = {FIELD_MAP[k]: v for k, v in profile_data.model_dump().items()}
    profile = StudentService.create_profile(db, current_user.id, data)

    AnalyticsService.track_event(
        db, "profile_created", user_id=current_user.id, metadata={"course": profile_data.course}
    )
    return profile_to_response(profile)


@router.get("/profile", response_model=Optional[ProfileResponse])
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Own student profile, or null if none has been created."""
    profile = StudentService.get_profile(db, current_user.id)
    if profile is None:
        return None
    return profile_to_response(profile)


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Update fields of own profile; omitted fields are left unchanged."""
    updates = {FIELD_MAP[k]: v for k, v in profile_data.model_dump(exclude_unset=True).items()}
    profile = StudentService.update_profile(db, current_user.id, updates)
    return profile_to_response(profile)
