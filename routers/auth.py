"""
Authentication APIs.

Identity is established by the bearer token on every request; these
endpoints only report and clear client-side state.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database.models import User
from auth.dependencies import get_current_user_optional
from core.logger import logger


router = APIRouter(prefix="/api/auth", tags=["auth"])


class UserResponse(BaseModel):
    """Signed-in user."""
    id: int
    openId: str
    name: Optional[str] = None
    email: Optional[str] = None
    loginMethod: Optional[str] = None
    role: str
    createdAt: str
    updatedAt: str
    lastSignedIn: str


class LogoutResponse(BaseModel):
    """Logout response."""
    success: bool


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        openId=user.open_id,
        name=user.name,
        email=user.email,
        loginMethod=user.login_method,
        role=user.role.value,
        createdAt=user.created_at.isoformat(),
        updatedAt=user.updated_at.isoformat(),
        lastSignedIn=user.last_signed_in.isoformat(),
    )


@router.get("/me", response_model=Optional[UserResponse])
async def me(current_user: Optional[User] = Depends(get_current_user_optional)):
    """
    Current user, or null when the request carries no valid token.
    Public endpoint.
    """
    if current_user is None:
        return None
    return user_to_response(current_user)


@router.post("/logout", response_model=LogoutResponse)
async def logout(current_user: Optional[User] = Depends(get_current_user_optional)):
    """
    Logout. Tokens are stateless, so the client just discards its token.
    Public endpoint.
    """
    if current_user is not None:
        logger.info(f"User {current_user.id} logged out")
    return LogoutResponse(success=True)
