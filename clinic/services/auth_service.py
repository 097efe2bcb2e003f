from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import datetime, timedelta, timezone
from typing import List
import hashlib
import logging

from ..models.user import User, RefreshToken
from ..models.doctor import Doctor, DEFAULT_AVAILABILITY
from ..models.patient import Patient
from ..core.exceptions import (
    AuthenticationError, InvalidArgumentError, InternalError, NotFoundError
)
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, UserRole, role_for_email, utcnow
)
from ..schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, UserProfileResponse
)

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> TokenResponse:
        """Register a new user together with the profile its role needs.

        The role comes from the email domain. The user row is committed
        first; if the profile cannot be created the user is deleted again.
        """
        role = role_for_email(user_data.email)

        if self._email_taken(user_data.email):
            raise InvalidArgumentError("User with this email already exists")

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=role,
            is_active=True
        )

        self.db.add(new_user)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent registration claimed the email after the check above
            self.db.rollback()
            logger.warning(f"Duplicate registration for {user_data.email} rejected by the database")
            raise InvalidArgumentError("User with this email already exists")
        self.db.refresh(new_user)
        logger.info(f"User created with ID: {new_user.id} ({role.value})")

        try:
            self._create_profile(new_user, user_data)
        except SQLAlchemyError as e:
            logger.error(f"Error creating {role.value} profile: {str(e)}")
            self.db.rollback()
            self.db.delete(new_user)
            self.db.commit()
            raise InternalError(f"Failed to create {role.value} profile")

        return self._issue_tokens(new_user)

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        role = role_for_email(login_data.email)

        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user:
            raise AuthenticationError("Invalid credentials - User not found")

        if user.role != role:
            raise AuthenticationError(
                "Invalid credentials - Email domain doesn't match user role"
            )

        if not verify_password(login_data.password, user.password_hash):
            raise AuthenticationError("Invalid credentials - Password incorrect")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        return self._issue_tokens(user)

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise AuthenticationError("Invalid refresh token")

        # Check if refresh token exists in database
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False,
            RefreshToken.expires_at > utcnow()
        ).first()

        if not stored_token:
            raise AuthenticationError("Invalid or expired refresh token")

        user = self.db.query(User).filter(
            User.id == token_payload.subject_id
        ).first()

        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        # Rotation revokes the presented token along with any others
        return self._issue_tokens(user)

    def logout_user(self, refresh_token: str) -> None:
        """Logout user by revoking refresh token."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash
        ).first()

        if stored_token:
            stored_token.is_revoked = True
            self.db.commit()

    def get_profile(self, user: User) -> UserProfileResponse:
        """User details plus the id of the caller's role profile."""
        profile = UserProfileResponse.model_validate(user)
        if user.role == UserRole.DOCTOR and user.doctor:
            profile.doctor_id = user.doctor.id
        elif user.role == UserRole.PATIENT and user.patient:
            profile.patient_id = user.patient.id
        return profile

    def list_users(self, skip: int = 0, limit: int = 10) -> List[User]:
        return self.db.query(User).order_by(User.id).offset(skip).limit(limit).all()

    def set_user_active(self, user_id: int, is_active: bool) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")

        user.is_active = is_active
        if not is_active:
            self._revoke_refresh_tokens(user.id)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} {'activated' if is_active else 'deactivated'}")
        return user

    def _email_taken(self, email: str) -> bool:
        return self.db.query(User).filter(User.email == email).first() is not None

    def _create_profile(self, user: User, user_data: UserRegister) -> None:
        """Create the doctor or patient document that belongs to a new user."""
        if user.role == UserRole.DOCTOR:
            profile = Doctor(
                user_id=user.id,
                specialization=user_data.specialization or "General Practice",
                qualifications=user_data.qualifications or ["MD"],
                experience=user_data.experience or 0,
                consultation_fee=user_data.consultation_fee if user_data.consultation_fee is not None else 50,
                availability=[dict(entry) for entry in DEFAULT_AVAILABILITY]
            )
        elif user.role == UserRole.PATIENT:
            now = utcnow()
            date_of_birth = (
                datetime.combine(user_data.date_of_birth, datetime.min.time())
                if user_data.date_of_birth else now
            )
            profile = Patient(
                user_id=user.id,
                date_of_birth=date_of_birth,
                blood_group=user_data.blood_group or "Not Specified",
                allergies=["No known allergies"],
                medical_history=[{
                    "condition": "General Health",
                    "diagnosedDate": now.isoformat(),
                    "notes": "Initial health record"
                }],
                medical_records=[]
            )
        else:
            # Admins have no profile document
            return

        self.db.add(profile)
        self.db.commit()
        logger.info(f"{user.role.value.capitalize()} profile created for user {user.id}")

    def _issue_tokens(self, user: User) -> TokenResponse:
        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)
        self.db.commit()
        self.db.refresh(user)

        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def _revoke_refresh_tokens(self, user_id: int) -> None:
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Store refresh token in database."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()

        # Decode token to get expiration
        token_payload = verify_token(refresh_token)
        expires_at = (
            datetime.fromtimestamp(token_payload.exp, timezone.utc).replace(tzinfo=None)
            if token_payload and token_payload.exp
            else utcnow() + timedelta(days=7)
        )

        # One live refresh token per user
        self._revoke_refresh_tokens(user_id)

        new_token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at
        )

        self.db.add(new_token)
