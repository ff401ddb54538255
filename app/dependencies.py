"""Authentication dependencies for FastAPI routes."""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.auth import get_auth_service
from app.services.jwt import get_jwt_service

AUTH_COOKIE_NAME = "ifrs_auth_token"
COOKIE_MAX_AGE = 24 * 60 * 60  # 24 hours


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: int
    email: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_user(cls, user: User) -> "CurrentUser":
        return cls(user_id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid token format. Use Bearer <token>")
    return auth_header[7:].strip() or None


def resolve_account(token: str, db: Session) -> User:
    """Verify a token and load its user, which must still exist and be active. Raises 401 otherwise."""
    payload = get_jwt_service().decode_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token") from None

    user = get_auth_service().get_active_user(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


def resolve_user(token: str, db: Session) -> CurrentUser:
    return CurrentUser.from_user(resolve_account(token, db))


def get_current_account(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """The authenticated ``User`` row, from Bearer token or cookie. Raises 401 if invalid."""
    # Check Authorization header first, fall back to cookie
    token = _bearer_token(request) or request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Access token is required")
    return resolve_account(token, db)


def get_current_user(user: User = Depends(get_current_account)) -> CurrentUser:
    """Extract and validate user from Bearer token or cookie. Raises 401 if invalid."""
    return CurrentUser.from_user(user)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
) -> CurrentUser | None:
    """Same as get_current_user, but returns None instead of rejecting the request."""
    try:
        return CurrentUser.from_user(get_current_account(request, db))
    except HTTPException:
        return None


def get_current_user_from_cookie(request: Request, db: Session = Depends(get_db)) -> CurrentUser | None:
    """Extract user from cookie, return None if missing or invalid."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        return None
    try:
        return resolve_user(token, db)
    except HTTPException:
        return None


def require_web_auth(user: CurrentUser | None = Depends(get_current_user_from_cookie)) -> CurrentUser:
    """Require authentication for web routes. Raises 401 to trigger redirect."""
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def set_auth_cookie(response: Response, token: str) -> None:
    """Set the authentication cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=False,
        max_age=COOKIE_MAX_AGE,
    )


def clear_auth_cookie(response: Response) -> None:
    """Clear the authentication cookie."""
    response.delete_cookie(key=AUTH_COOKIE_NAME)
