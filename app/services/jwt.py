"""JWT Token Service."""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.config import get_settings


def format_duration(minutes: int) -> str:
    """Render a token lifetime the way clients expect it, e.g. ``24h`` or ``90m``."""
    if minutes % 1440 == 0 and minutes >= 1440 * 2:
        return f"{minutes // 1440}d"
    if minutes % 60 == 0:
        return f"{minutes // 60}h"
    return f"{minutes}m"


class JWTService:
    """Handles JWT token creation and validation."""

    def __init__(self) -> None:
        settings = get_settings()
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES

    @property
    def expires_in(self) -> str:
        return format_duration(self.expire_minutes)

    def create_token(self, user_id: int, email: str, expires_delta: timedelta | None = None) -> str:
        """Create a JWT token for the given user."""
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.expire_minutes)
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a JWT token. Returns None if invalid or expired."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if "sub" not in payload or "email" not in payload:
            return None
        return payload


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
