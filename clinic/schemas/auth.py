from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import date, datetime

from ..core.security import UserRole


class EmailCredentials(BaseModel):
    email: EmailStr

    # Accounts are stored and looked up by lowercase email
    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserRegister(EmailCredentials):
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6, max_length=72)

    # Optional profile fields, applied to the role profile created alongside
    specialization: Optional[str] = None
    qualifications: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0)
    consultation_fee: Optional[float] = Field(None, ge=0)
    date_of_birth: Optional[date] = None
    blood_group: Optional[str] = None


class UserLogin(EmailCredentials):
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None


class UserProfileResponse(UserResponse):
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class VerifyResponse(BaseModel):
    valid: bool = True
    user_id: int
    role: UserRole
    email: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool
