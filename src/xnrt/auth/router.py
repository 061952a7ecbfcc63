"""Authentication router: /api/v1/auth/* endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.jwt import create_access_token
from xnrt.auth.password import PasswordStrengthError, password_strength_score, validate_password_strength
from xnrt.auth.schemas import (
    LoginRequest,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from xnrt.auth.service import authenticate_user, register_user
from xnrt.config import get_settings
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _issue_token(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.is_admin),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TokenResponse:
    """Register with email + password, optionally under a referrer."""
    user = await register_user(
        db,
        redis,
        email=body.email,
        username=body.username,
        password=body.password,
        referral_code=body.referral_code,
    )
    await db.commit()
    await db.refresh(user)
    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TokenResponse:
    """Login with email + password."""
    user = await authenticate_user(db, redis, body.email, body.password)
    await db.commit()
    await db.refresh(user)
    logger.info("user_login", user_id=user.id)
    return _issue_token(user)


@router.post("/password-strength", response_model=PasswordStrengthResponse)
async def password_strength(body: PasswordStrengthRequest) -> PasswordStrengthResponse:
    """Score a candidate password without storing it."""
    try:
        validate_password_strength(body.password)
    except PasswordStrengthError as e:
        return PasswordStrengthResponse(
            score=password_strength_score(body.password), acceptable=False, message=str(e)
        )
    return PasswordStrengthResponse(score=password_strength_score(body.password), acceptable=True)
