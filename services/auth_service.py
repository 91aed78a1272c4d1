"""
Sign-in service: maps external identities onto local user accounts.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from database.models import User, UserRole
from core.logger import logger
import config


class AuthService:
    """Service for authentication operations."""

    @staticmethod
    def get_user_by_open_id(db: Session, open_id: str) -> Optional[User]:
        """Get user by external identity id."""
        return db.query(User).filter(User.open_id == open_id).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def upsert_user(
        db: Session,
        open_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        login_method: Optional[str] = None,
    ) -> User:
        """
        Create or refresh the user for an identity on sign-in.

        The first sign-in creates the account; later ones update last_signed_in
        and any profile claims that are present. The identity matching
        OWNER_OPEN_ID is granted the admin role.

        Args:
            db: Database session
            open_id: External identity id (token "sub")
            name: Display name claim
            email: Email claim
            login_method: Login method claim (e.g. "google")

        Returns:
            The signed-in User
        """
        now = datetime.utcnow()
        user = AuthService.get_user_by_open_id(db, open_id)

        if user is None:
            user = User(
                open_id=open_id,
                name=name,
                email=email,
                login_method=login_method,
                role=UserRole.USER,
                last_signed_in=now,
            )
            db.add(user)
            logger.info(f"Created user for identity {open_id}")
        else:
            if name is not None:
                user.name = name
            if email is not None:
                user.email = email
            if login_method is not None:
                user.login_method = login_method
            user.last_signed_in = now

        if config.OWNER_OPEN_ID and open_id == config.OWNER_OPEN_ID and user.role != UserRole.ADMIN:
            user.role = UserRole.ADMIN
            logger.info(f"Granted admin role to owner identity {open_id}")

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_role(db: Session, user: User, role: UserRole) -> User:
        """Change a user's role."""
        user.role = role
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} ({user.open_id}) role set to {role.value}")
        return user
