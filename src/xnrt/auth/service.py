"""
Authentication business logic.

Handles registration, login and account lockout.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from redis.exceptions import RedisError
from sqlalchemy import func, select

from xnrt.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from xnrt.config import get_settings
from xnrt.db.models import User
from xnrt.exceptions import AccountLockedError, AuthenticationError, StateConflictError, ValidationError
from xnrt.ledger.service import create_balance
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.referrals.codes import generate_unique_referral_code
from xnrt.referrals.service import assign_referrer
from xnrt.social.activity_service import record_activity

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Get a user by primary key."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Get a user by username (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.username) == username.lower().strip()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    redis: Any | None,
    email: str,
    username: str,
    password: str,
    referral_code: str | None = None,
) -> User:
    """
    Register a new user with a zeroed balance and backfilled progress rows.

    Raises:
        ValidationError: Weak password or unusable referral code.
        StateConflictError: Email or username already taken.
        NotFoundError: Unknown referral code.
    """
    try:
        validate_password_strength(password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    if await get_user_by_email(db, email) is not None:
        raise StateConflictError("Email already registered")
    if await get_user_by_username(db, username) is not None:
        raise StateConflictError("Username already taken")

    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        username=username.strip(),
        password_hash=hash_password(password),
        referral_code=await generate_unique_referral_code(db),
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()

    await create_balance(db, user.id)
    await ProgressEvaluator(db, redis).ensure_rows(user.id)
    await record_activity(db, user.id, "account_created", "Welcome to XNRT!")

    if referral_code:
        await assign_referrer(db, user, referral_code, redis=redis)

    logger.info("user_created", user_id=user.id, referred_by=user.referred_by)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Any | None,
    email: str,
    password: str,
) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        AuthenticationError: If credentials are invalid.
        AccountLockedError: After too many failed attempts.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise AuthenticationError("Invalid email or password")

    if await check_account_lockout(redis, user.id):
        raise AccountLockedError("Account temporarily locked. Try again later.")

    if not verify_password(password, user.password_hash):
        await increment_failed_login(redis, user.id)
        raise AuthenticationError("Invalid email or password")

    await clear_failed_login(redis, user.id)

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    return user


# ---------------------------------------------------------------------------
# Account lockout (skipped when Redis is unavailable)
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Any | None, user_id: int) -> bool:
    """Check if the account is locked due to too many failed login attempts."""
    if redis is None:
        return False
    settings = get_settings()
    try:
        count_str = await redis.get(f"login_attempts:{user_id}")
    except RedisError:
        logger.warning("lockout_check_failed", user_id=user_id, exc_info=True)
        return False
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Any | None, user_id: int) -> int:
    """Increment failed login counter. Returns the new count."""
    if redis is None:
        return 0
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    except RedisError:
        logger.warning("lockout_increment_failed", user_id=user_id, exc_info=True)
        return 0
    return int(count)


async def clear_failed_login(redis: Any | None, user_id: int) -> None:
    """Clear the failed login counter after a successful login."""
    if redis is None:
        return
    try:
        await redis.delete(f"login_attempts:{user_id}")
    except RedisError:
        logger.warning("lockout_clear_failed", user_id=user_id, exc_info=True)
