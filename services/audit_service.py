"""
Admin audit logging for compliance and monitoring.
"""
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session
from fastapi import Request

from database.models import AdminLog
from core.logger import logger


class AuditService:
    """Service for admin audit logging."""

    @staticmethod
    def log_admin_action(
        db: Session,
        admin_id: int,
        action: str,
        target_user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AdminLog:
        """
        Append an entry to the admin log.

        Args:
            db: Database session
            admin_id: Acting admin's user ID
            action: Action name (e.g., "filter_students", "export_csv")
            target_user_id: User the action was performed on
            details: Additional details (JSON-serializable)

        Returns:
            Created AdminLog
        """
        admin_log = AdminLog(
            admin_id=admin_id,
            action=action,
            target_user_id=target_user_id,
            details=details
        )
        try:
            db.add(admin_log)
            db.commit()
            db.refresh(admin_log)
        except Exception:
            db.rollback()
            logger.error(f"Failed to log admin action {action} for admin {admin_id}", exc_info=True)
            raise
        logger.info(f"Admin {admin_id} action: {action}" + (f" (target user {target_user_id})" if target_user_id else ""))
        return admin_log

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        admin_id: int,
        action: str,
        target_user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AdminLog:
        """
        Log an admin action from a FastAPI request, recording client IP and user agent.

        Args:
            db: Database session
            request: FastAPI request object
            admin_id: Acting admin's user ID
            action: Action name
            target_user_id: User the action was performed on
            details: Additional details

        Returns:
            Created AdminLog
        """
        merged = dict(details or {})
        merged["ipAddress"] = request.client.host if request.client else None
        merged["userAgent"] = request.headers.get("user-agent")

        return AuditService.log_admin_action(
            db=db,
            admin_id=admin_id,
            action=action,
            target_user_id=target_user_id,
            details=merged
        )

    @staticmethod
    def list_admin_logs(db: Session, admin_id: int, limit: int = 100, offset: int = 0) -> List[AdminLog]:
        """An admin's own log entries, newest first."""
        return (
            db.query(AdminLog)
            .filter(AdminLog.admin_id == admin_id)
            .order_by(AdminLog.created_at.desc(), AdminLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
