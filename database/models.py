"""
Database models for the teeth damage analysis system.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Text,
    ForeignKey, JSON, Index, TypeDecorator
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        kwargs.setdefault("length", 32)
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums - Must be defined before models that use them
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles for authorization."""
    USER = "user"
    ADMIN = "admin"


class SubmissionStatus(str, enum.Enum):
    """Submission processing status."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageQuality(str, enum.Enum):
    """Self-reported image quality."""
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Severity(str, enum.Enum):
    """Dental issue severity."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class NotificationType(str, enum.Enum):
    """Email notification types."""
    ANALYSIS_COMPLETE = "analysis_complete"
    CRITICAL_FINDING = "critical_finding"
    SYSTEM_ALERT = "system_alert"


class NotificationStatus(str, enum.Enum):
    """Email delivery status."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """User account, keyed by the external identity id (open_id)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    open_id = Column(String(64), unique=True, index=True, nullable=False)  # External identity (token "sub")
    name = Column(Text, nullable=True)
    email = Column(String(320), nullable=True, index=True)
    login_method = Column(String(64), nullable=True)
    role = Column(EnumValue(UserRole), default=UserRole.USER, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_signed_in = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    student_profile = relationship("StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    submissions = relationship("Submission", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_user_role', 'role'),
    )


class StudentProfile(Base):
    """Student profile information extended from the user account."""
    __tablename__ = "student_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    surname = Column(String(100), nullable=False)
    student_id = Column(String(50), unique=True, index=True, nullable=False)
    age = Column(Integer, nullable=True)
    address = Column(Text, nullable=True)
    course = Column(String(150), nullable=True)
    year_level = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="student_profile")

    __table_args__ = (
        Index('idx_profile_course', 'course'),
        Index('idx_profile_year_level', 'year_level'),
    )


class Submission(Base):
    """Uploaded dental image and its processing status."""
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    image_key = Column(String(255), nullable=False)  # Storage object key
    image_url = Column(Text, nullable=False)  # Retrievable URL returned by storage
    file_name = Column(String(255), nullable=False)
    mime_type = Column(String(50), nullable=False)
    file_size = Column(Integer, nullable=False)
    image_quality = Column(EnumValue(ImageQuality), default=ImageQuality.GOOD, nullable=True)
    status = Column(EnumValue(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="submissions")
    analysis_result = relationship(
        "AnalysisResult", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
    email_notifications = relationship("EmailNotification", back_populates="submission")

    __table_args__ = (
        Index('idx_submission_user', 'user_id'),
        Index('idx_submission_status', 'status'),
        Index('idx_submission_created', 'created_at'),
    )


class AnalysisResult(Base):
    """Analysis output for a submission (at most one per submission)."""
    __tablename__ = "analysis_results"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    detected_issues = Column(JSON, nullable=False)  # [{type, location, severity, confidence, description}]
    overall_severity = Column(EnumValue(Severity), nullable=False)
    recommendations = Column(JSON, nullable=False)  # [{title, description, priority}]
    disclaimer = Column(Text, nullable=False)
    ml_model_version = Column(String(50), nullable=False)
    processing_time = Column(Integer, nullable=False)  # milliseconds
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    submission = relationship("Submission", back_populates="analysis_result")

    __table_args__ = (
        Index('idx_analysis_user', 'user_id'),
        Index('idx_analysis_severity', 'overall_severity'),
        Index('idx_analysis_created', 'created_at'),
    )


class AdminLog(Base):
    """Admin audit log for compliance and monitoring (append-only)."""
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(100), nullable=False)  # e.g., "filter_students", "export_csv"
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    details = Column(JSON, nullable=True)  # Filter values, request ip / user agent
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_admin_log_admin', 'admin_id'),
        Index('idx_admin_log_action', 'action'),
    )


class AnalyticsEvent(Base):
    """Usage tracking event (append-only)."""
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(100), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)  # 'metadata' is reserved on declarative classes
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_analytics_event_type', 'event_type'),
    )


class EmailNotification(Base):
    """Email notification tracking."""
    __tablename__ = "email_notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="SET NULL"), nullable=True)
    notification_type = Column(EnumValue(NotificationType), nullable=False)
    recipient_email = Column(String(320), nullable=False)
    subject = Column(String(255), nullable=False)
    status = Column(EnumValue(NotificationStatus), default=NotificationStatus.PENDING, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    submission = relationship("Submission", back_populates="email_notifications")

    __table_args__ = (
        Index('idx_email_status', 'status'),
        Index('idx_email_user', 'user_id'),
    )
