from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..core.security import verify_token, UserRole, Principal
from ..models.user import User

# Missing or non-Bearer headers are reported as 401 below, not by HTTPBearer
security = HTTPBearer(auto_error=False)

async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Principal:
    """Resolve the caller's subject id and role from the bearer token."""
    if credentials is None:
        raise AuthenticationError("No token, authorization denied")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Refresh tokens are only good for /auth/refresh
    if token_payload.token_type not in (None, "access"):
        raise AuthenticationError("Invalid token type")

    subject_id = token_payload.subject_id
    if subject_id is None or token_payload.role is None:
        raise AuthenticationError("Invalid token payload")

    return Principal(
        subject_id=subject_id,
        role=token_payload.role,
        email=token_payload.email
    )

async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    user = db.query(User).filter(User.id == principal.subject_id).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

async def get_active_principal(
    principal: Principal = Depends(get_current_principal),
    user: User = Depends(get_current_user)
) -> Principal:
    """The caller's principal, once its account is known to exist and be active."""
    return principal

# Role-based access control dependencies
def require_role(role: UserRole):
    """Create a dependency that admits only callers with exactly this role."""
    async def role_checker(
        principal: Principal = Depends(get_active_principal)
    ) -> Principal:
        if principal.role != role:
            raise AuthorizationError(f"Only {role.value} can access this route")
        return principal

    return role_checker

def require_any_role(*roles: UserRole):
    """Create a dependency that admits callers holding any of the roles."""
    async def role_checker(
        principal: Principal = Depends(get_active_principal)
    ) -> Principal:
        if principal.role not in roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in roles]}"
            )
        return principal

    return role_checker

# Specific role dependencies
get_admin = require_role(UserRole.ADMIN)
get_doctor = require_role(UserRole.DOCTOR)
get_patient = require_role(UserRole.PATIENT)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for authentication endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)  # 1 hour window
    else:
        if int(current_requests) >= settings.RATE_LIMIT_PER_HOUR:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
