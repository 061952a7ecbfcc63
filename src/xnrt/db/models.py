"""ORM models for the rewards platform.

Amounts are ``Numeric(38, 18)`` and always handled as ``Decimal``.
Balances are mutated only through the atomic helpers in
``xnrt.ledger.service``; never read-modify-write them through the ORM.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from xnrt.db.base import Base, Money, UTCDateTime

JSONType = JSON().with_variant(JSONB(), "postgresql")

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    referral_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    referred_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_check_in: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    balance: Mapped[Balance | None] = relationship("Balance", back_populates="user", uselist=False)


# ---------------------------------------------------------------------------
# Reward Ledger
# ---------------------------------------------------------------------------


class Balance(Base):
    """One row per user; sub-accounts plus the monotonic total_earned counter."""

    __tablename__ = "balances"
    __table_args__ = (
        CheckConstraint("main_balance >= 0", name="balances_main_non_negative"),
        CheckConstraint("staking_balance >= 0", name="balances_staking_non_negative"),
        CheckConstraint("mining_balance >= 0", name="balances_mining_non_negative"),
        CheckConstraint("referral_balance >= 0", name="balances_referral_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    main_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    staking_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    mining_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    referral_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    total_earned: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="balance")


class XPLedger(Base):
    """Immutable XP transaction log with idempotency key."""

    __tablename__ = "xp_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class Referral(Base):
    """Materialized (ancestor, descendant) pair for levels 1-3."""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referrer_id", "referred_user_id", name="referrals_referrer_referred_key"),
        CheckConstraint("level BETWEEN 1 AND 3", name="referrals_level_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    referred_user: Mapped[User] = relationship("User", foreign_keys=[referred_user_id], lazy="joined")


# ---------------------------------------------------------------------------
# Tasks & Achievements
# ---------------------------------------------------------------------------


class Task(Base):
    """Task definitions; category names the progress metric that drives them."""

    __tablename__ = "tasks"
    __table_args__ = (CheckConstraint("max_progress >= 1", name="tasks_max_progress_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    xnrt_reward: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    max_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class UserTask(Base):
    """Per-user task progress: UNIQUE(user_id, task_id)."""

    __tablename__ = "user_tasks"
    __table_args__ = (UniqueConstraint("user_id", "task_id", name="user_tasks_user_task_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id: Mapped[int] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    task: Mapped[Task] = relationship("Task", lazy="joined")


class Achievement(Base):
    """Achievement definitions; category names the progress metric."""

    __tablename__ = "achievements"
    __table_args__ = (CheckConstraint("requirement >= 1", name="achievements_requirement_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="Award", server_default="Award")
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    requirement: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class UserAchievement(Base):
    """Per-user achievement state: UNIQUE(user_id, achievement_id)."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_achievement_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    unlocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")


# ---------------------------------------------------------------------------
# Mining
# ---------------------------------------------------------------------------


class MiningSession(Base):
    """Timed mining cycle. At most one 'active' row per user."""

    __tablename__ = "mining_sessions"
    __table_args__ = (
        Index("idx_mining_sessions_user_status", "user_id", "status"),
        Index(
            "uq_mining_sessions_one_active",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    base_reward: Mapped[Decimal] = mapped_column(Money, nullable=False)
    boost_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ad_boost_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    final_reward: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    next_available: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Staking
# ---------------------------------------------------------------------------


class Stake(Base):
    """Fixed-term, fixed-rate staking position."""

    __tablename__ = "stakes"
    __table_args__ = (Index("idx_stakes_user_status", "user_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tier: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    paid_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_profit: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO, server_default="0")
    last_profit_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    withdrawn_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


class Transaction(Base):
    """Deposit and withdrawal requests."""

    __tablename__ = "transactions"
    __table_args__ = (Index("idx_transactions_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    usdt_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    fee: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    net_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    source: Mapped[str | None] = mapped_column(String(16), nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_hash: Mapped[str | None] = mapped_column(String(66), unique=True, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Activity & Notifications
# ---------------------------------------------------------------------------


class Activity(Base):
    """Append-only personal activity feed."""

    __tablename__ = "activities"
    __table_args__ = (Index("idx_activities_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    activity_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class Notification(Base):
    """Persisted user notifications."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(256), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    notification_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
