"""Authentication service."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.password_reset import PasswordResetToken
from app.models.user import User
from app.services.security import generate_reset_token, hash_password, verify_password

logger = logging.getLogger("ifrs_explorer")

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_RESET_TOKEN = "Invalid or expired reset token"


@dataclass
class AuthResult:
    """Result of an authentication attempt."""

    success: bool
    error: str | None = None
    user: User | None = None


class AuthService:
    """Handles user registration, authentication and password resets."""

    def __init__(self) -> None:
        self._dummy_hash: str | None = None

    def _find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(func.lower(User.email) == email.lower().strip()).first()

    def _timing_guard(self, password: str) -> None:
        # Burn a bcrypt check so unknown emails take as long as wrong passwords.
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("dummy-password")
        verify_password(password, self._dummy_hash)

    def register(self, db: Session, email: str, password: str, first_name: str, last_name: str) -> AuthResult:
        """Register a new user. Returns AuthResult with success/error."""
        if self._find_by_email(db, email):
            return AuthResult(success=False, error="User with this email already exists")

        user = User(
            email=email.lower().strip(),
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            is_active=True,
            email_verified=False,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Registered user %s", user.id)

        return AuthResult(success=True, user=user)

    def authenticate(self, db: Session, email: str, password: str) -> AuthResult:
        """Authenticate a user by email and password."""
        user = self._find_by_email(db, email)
        if not user or not user.is_active:
            self._timing_guard(password)
            return AuthResult(success=False, error=INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            return AuthResult(success=False, error=INVALID_CREDENTIALS)

        user.last_login = datetime.utcnow()
        db.commit()
        db.refresh(user)

        return AuthResult(success=True, user=user)

    def get_active_user(self, db: Session, user_id: int) -> User | None:
        """Get a user by ID, only if the account is active."""
        return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()

    def request_password_reset(self, db: Session, email: str) -> str | None:
        """Generate a password reset token for the given email.

        Returns the token if an active user exists, None otherwise.
        Any earlier unused tokens for the user are invalidated.
        Caller should not reveal whether the user was found.
        """
        user = self._find_by_email(db, email)
        if not user or not user.is_active:
            return None

        db.query(PasswordResetToken).filter(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.used.is_(False),
        ).update({PasswordResetToken.used: True}, synchronize_session=False)

        token = generate_reset_token()
        expire_minutes = get_settings().RESET_TOKEN_EXPIRE_MINUTES
        db.add(
            PasswordResetToken(
                user_id=user.id,
                token=token,
                expires_at=datetime.utcnow() + timedelta(minutes=expire_minutes),
                used=False,
            )
        )
        db.commit()

        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> AuthResult:
        """Reset a user's password using a valid, unused reset token."""
        row = (
            db.query(PasswordResetToken, User)
            .join(User, PasswordResetToken.user_id == User.id)
            .filter(
                PasswordResetToken.token == token,
                PasswordResetToken.used.is_(False),
                PasswordResetToken.expires_at > datetime.utcnow(),
                User.is_active.is_(True),
            )
            .first()
        )
        if not row:
            return AuthResult(success=False, error=INVALID_RESET_TOKEN)

        reset_token, user = row
        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.utcnow()
        reset_token.used = True
        db.commit()
        db.refresh(user)
        logger.info("Password reset for user %s", user.id)

        return AuthResult(success=True, user=user)


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
