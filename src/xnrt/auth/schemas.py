"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Email registration, optionally with a referral code."""

    email: EmailStr
    username: str = Field(..., min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(..., min_length=1, max_length=128)
    referral_code: str | None = Field(None, min_length=1, max_length=16)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class PasswordStrengthRequest(BaseModel):
    password: str = Field(..., max_length=128)


class PasswordStrengthResponse(BaseModel):
    score: int
    max_score: int = 5
    acceptable: bool
    message: str | None = None


class UserResponse(BaseModel):
    """Profile of the authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    referral_code: str
    referred_by: int | None = None
    is_admin: bool
    xp: int
    level: int
    streak: int
    last_check_in: datetime | None = None
    created_at: datetime | None = None


class TokenResponse(BaseModel):
    """Token response returned after successful auth."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse
