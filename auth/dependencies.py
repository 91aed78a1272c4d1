"""
Authentication dependencies for FastAPI.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status, Security
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database.models import User, UserRole
from auth.security import security, decode_access_token
from services.auth_service import AuthService


def get_db_session(request: Request):
    """Get database session from the application's Database."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )
    with db.get_session() as session:
        yield session


def _authenticate(credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> Optional[User]:
    """Resolve bearer credentials to a signed-in user, or None if absent/invalid."""
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        return None

    return AuthService.upsert_user(
        db,
        open_id=str(payload["sub"]),
        name=payload.get("name"),
        email=payload.get("email"),
        login_method=payload.get("loginMethod"),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db_session)
) -> User:
    """
    Get current authenticated user from the identity token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        Current user

    Raises:
        HTTPException: If authentication fails
    """
    user = _authenticate(credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db_session)
) -> Optional[User]:
    """
    Get current user if authenticated, otherwise None.

    Args:
        credentials: Optional HTTP Bearer token credentials
        db: Database session

    Returns:
        Current user or None
    """
    return _authenticate(credentials, db)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Reject callers without the admin role."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
