from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from enum import Enum
import secrets

from .config import settings
from .exceptions import AuthorizationError, InvalidArgumentError

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

# Registration and login derive the role from the email domain
EMAIL_DOMAIN_ROLES = {
    "@patients.com": UserRole.PATIENT,
    "@doctors.com": UserRole.DOCTOR,
    "@admin.com": UserRole.ADMIN,
}

def role_for_email(email: str) -> UserRole:
    """Map an email address to the role its domain stands for."""
    lowered = email.lower()
    for suffix, role in EMAIL_DOMAIN_ROLES.items():
        if lowered.endswith(suffix):
            return role
    raise InvalidArgumentError(
        "Invalid email domain. Use @patients.com, @doctors.com, or @admin.com"
    )

def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching stored timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

class TokenPayload(BaseModel):
    """Decoded JWT claims.

    Tokens minted by older clients carry the subject under ``id``, ``_id`` or
    ``userId`` rather than ``sub``; ``subject_id`` folds them into one value.
    """
    model_config = ConfigDict(populate_by_name=True)

    sub: Optional[Union[int, str]] = None
    id: Optional[Union[int, str]] = None
    legacy_id: Optional[Union[int, str]] = Field(None, alias="_id")
    userId: Optional[Union[int, str]] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    exp: Optional[int] = None
    token_type: Optional[str] = None  # "access" or "refresh"

    @property
    def subject_id(self) -> Optional[int]:
        for claim in (self.id, self.legacy_id, self.userId, self.sub):
            if claim is None or claim == "":
                continue
            try:
                return int(claim)
            except (TypeError, ValueError):
                return None
        return None

class Principal(BaseModel):
    """The caller of a request, as resolved from its credential."""
    subject_id: int
    role: UserRole
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

def ensure_owner_or_admin(
    principal: Principal,
    owner_user_id: Optional[int],
    detail: str = "Not authorized to access this resource"
) -> None:
    """Allow the owning user or an admin; deny everyone else."""
    if principal.subject_id == owner_user_id:
        return
    if principal.is_admin:
        return
    raise AuthorizationError(detail)

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

# JWT utilities
def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "token_type": "access"
    })

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt

def create_refresh_token(data: dict) -> str:
    """Create JWT refresh token."""
    to_encode = data.copy()
    expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    to_encode.update({
        "exp": expire,
        "jti": secrets.token_hex(8),
        "token_type": "refresh"
    })

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt

def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        return TokenPayload(**payload)

    except (JWTError, ValidationError):
        return None

def create_token_pair(user_id: int, email: str, role: UserRole) -> Token:
    """Create both access and refresh tokens."""
    token_data = {
        "sub": str(user_id),
        "email": email,
        "role": role.value
    }

    access_token = create_access_token(token_data)
    refresh_token = create_refresh_token(token_data)

    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )
