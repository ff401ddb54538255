"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import CurrentUser, get_current_account, get_current_user
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.auth import (
    AuthPayload,
    ForgotPasswordData,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenCheck,
    UserResponse,
)
from app.schemas.common import ApiResponse, MessageData
from app.services.auth import get_auth_service
from app.services.jwt import get_jwt_service

logger = logging.getLogger("ifrs_explorer")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account exists with that email, a password reset link has been sent."


def _auth_payload(user: User) -> AuthPayload:
    jwt_service = get_jwt_service()
    token = jwt_service.create_token(user_id=user.id, email=user.email)
    return AuthPayload(user=UserResponse.model_validate(user), token=token, expires_in=jwt_service.expires_in)


@router.post(
    "/register",
    status_code=201,
    response_model=ApiResponse[AuthPayload],
    response_model_exclude_unset=True,
)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)) -> ApiResponse[AuthPayload]:
    """Register a new user account."""
    auth_service = get_auth_service()
    result = auth_service.register(db, body.email, body.password, body.first_name, body.last_name)

    if not result.success:
        raise HTTPException(status_code=409, detail=result.error)

    return ApiResponse(success=True, message="User registered successfully", data=_auth_payload(result.user))


@router.post("/login", response_model=ApiResponse[AuthPayload], response_model_exclude_unset=True)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> ApiResponse[AuthPayload]:
    """Authenticate and receive a JWT token."""
    auth_service = get_auth_service()
    result = auth_service.authenticate(db, body.email, body.password)

    if not result.success:
        raise HTTPException(status_code=401, detail=result.error)

    return ApiResponse(success=True, message="Login successful", data=_auth_payload(result.user))


@router.post("/verify-token", response_model=ApiResponse[TokenCheck], response_model_exclude_unset=True)
def verify_token(user: User = Depends(get_current_account)) -> ApiResponse[TokenCheck]:
    """Check that a bearer token is still valid and return its user."""
    return ApiResponse(
        success=True,
        message="Token is valid",
        data=TokenCheck(user=UserResponse.model_validate(user), valid=True),
    )


@router.get("/profile", response_model=ApiResponse[UserResponse], response_model_exclude_unset=True)
def get_profile(user: User = Depends(get_current_account)) -> ApiResponse[UserResponse]:
    """Get the current user's profile."""
    return ApiResponse(
        success=True,
        message="Profile retrieved successfully",
        data=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=ApiResponse[MessageData], response_model_exclude_unset=True)
def logout(user: CurrentUser = Depends(get_current_user)) -> ApiResponse[MessageData]:
    """Tokens are stateless: the client discards its token, nothing is revoked server-side."""
    logger.info("User %s logged out", user.user_id)
    return ApiResponse(
        success=True,
        message="Logout successful",
        data=MessageData(message="Logged out successfully"),
    )


@router.post("/forgot-password", response_model=ApiResponse[ForgotPasswordData], response_model_exclude_unset=True)
@limiter.limit("3/minute")
def forgot_password(
    request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)
) -> ApiResponse[ForgotPasswordData]:
    """Request a password reset. Logs reset link to server console."""
    auth_service = get_auth_service()
    token = auth_service.request_password_reset(db, body.email)

    data = ForgotPasswordData(message=FORGOT_PASSWORD_MESSAGE)
    if token:
        base_url = str(request.base_url).rstrip("/")
        logger.info("PASSWORD RESET: %s/reset-password?token=%s", base_url, token)
        if get_settings().EXPOSE_RESET_TOKEN:
            data.token = token

    return ApiResponse(success=True, message="Password reset request processed", data=data)


@router.post("/reset-password", response_model=ApiResponse[MessageData], response_model_exclude_unset=True)
@limiter.limit("5/minute")
def reset_password(
    request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)
) -> ApiResponse[MessageData]:
    """Reset password using a valid, unused token."""
    auth_service = get_auth_service()
    result = auth_service.reset_password(db, body.token, body.new_password)

    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    return ApiResponse(
        success=True,
        message="Password reset successful",
        data=MessageData(message="Password has been reset successfully."),
    )
