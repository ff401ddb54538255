"""Pydantic schemas for authentication endpoints."""

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import CamelModel

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")


def _validate_password_strength(v: str) -> str:
    if len(v.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes long")
    if not PASSWORD_PATTERN.match(v):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character"
        )
    return v


def _validate_name(v: str) -> str:
    v = v.strip()
    if not 2 <= len(v) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not NAME_PATTERN.match(v):
        raise ValueError("Name can only contain letters and spaces")
    return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str
    last_name: str

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=32, max_length=128)
    new_password: str = Field(min_length=8)

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    is_active: bool
    email_verified: bool
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None


class AuthPayload(CamelModel):
    user: UserResponse
    token: str
    expires_in: str


class TokenCheck(BaseModel):
    user: UserResponse
    valid: bool


class ForgotPasswordData(BaseModel):
    message: str
    token: str | None = None
