from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...core.security import Principal
from ...api.deps import (
    get_current_user, get_active_principal, get_admin, rate_limit_check
)
from ...services.auth_service import AuthService
from ...schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, UserProfileResponse,
    RefreshTokenRequest, VerifyResponse, UserStatusUpdate
)
from ...schemas.common import Message
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new user; the email domain decides the role."""
    auth_service = AuthService(db)
    return auth_service.register_user(user_data)

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
):
    """Authenticate user and return access tokens."""
    auth_service = AuthService(db)
    return auth_service.authenticate_user(login_data)

@router.post("/refresh", response_model=TokenResponse)
@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Refresh access token using refresh token."""
    auth_service = AuthService(db)
    return auth_service.refresh_access_token(refresh_data.refresh_token)

@router.post("/logout", response_model=Message)
async def logout(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Logout user by revoking refresh token."""
    auth_service = AuthService(db)
    auth_service.logout_user(refresh_data.refresh_token)
    return Message(message="Logged out successfully")

@router.get("/profile", response_model=UserProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get current user information with the id of their profile."""
    return AuthService(db).get_profile(current_user)

@router.get("/verify", response_model=VerifyResponse)
async def verify_token_endpoint(
    principal: Principal = Depends(get_active_principal)
):
    """Verify if token is valid."""
    return VerifyResponse(
        user_id=principal.subject_id,
        role=principal.role,
        email=principal.email
    )

# Admin routes
@router.get("/users", response_model=List[UserResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_admin)
):
    """List all users (admin only)."""
    return AuthService(db).list_users(skip, limit)

@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    status_data: UserStatusUpdate,
    db: Session = Depends(get_db),
    _: Principal = Depends(get_admin)
):
    """Update user active status (admin only)."""
    return AuthService(db).set_user_active(user_id, status_data.is_active)
