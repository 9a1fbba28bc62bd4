"""
summit.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- profiles                   — Community members (auth-provider UUID PK)
- user_points                — Cached total / weekly / monthly balances
- point_transactions         — Append-only point ledger
- user_streaks               — Consecutive-day activity streaks
- daily_challenges           — One challenge per calendar date
- user_challenge_completions — One completion per (member, challenge)
- badges                     — Static badge catalog with thresholds
- user_badges                — Earned badges
- settings                   — Admin-tunable key/value store
- admin_log                  — Append-only audit trail
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Summit ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActionType(enum.StrEnum):
    """Reasons a point transaction is recorded."""
    DAILY_CHALLENGE = "daily_challenge"
    ACHIEVEMENT_POSTED = "achievement_posted"
    DISCUSSION_CREATED = "discussion_created"
    GOAL_COMPLETED = "goal_completed"
    MEETING_ATTENDED = "meeting_attended"
    MANUAL_AWARD = "manual_award"


class RequirementType(enum.StrEnum):
    """Member metric a badge threshold is compared against."""
    POINTS = "points"
    WEEKLY_POINTS = "weekly_points"
    MONTHLY_POINTS = "monthly_points"
    STREAK = "streak"
    LONGEST_STREAK = "longest_streak"
    CHALLENGES_COMPLETED = "challenges_completed"
    ACHIEVEMENTS = "achievements"
    GOALS_COMPLETED = "goals_completed"
    DISCUSSIONS = "discussions"
    MEETINGS_ATTENDED = "meetings_attended"
    BADGES = "badges"


# ---------------------------------------------------------------------------
# Profile — one row per member
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    member_tier: Mapped[str] = mapped_column(String(30), default="member")
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    achievements_count: Mapped[int] = mapped_column(Integer, default=0)
    goals_completed: Mapped[int] = mapped_column(Integer, default=0)
    discussions_count: Mapped[int] = mapped_column(Integer, default=0)
    meetings_attended: Mapped[int] = mapped_column(Integer, default=0)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    points: Mapped[UserPoints | None] = relationship(
        back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )
    streak: Mapped[UserStreak | None] = relationship(
        back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )
    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# UserPoints — cached balances, one row per member
# ---------------------------------------------------------------------------
class UserPoints(Base):
    """Cached point balances.

    ``weekly_points`` / ``monthly_points`` belong to the period named by
    ``week_key`` / ``month_key``; a credit in a newer period resets them.
    """
    __tablename__ = "user_points"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    weekly_points: Mapped[int] = mapped_column(Integer, default=0)
    monthly_points: Mapped[int] = mapped_column(Integer, default=0)
    week_key: Mapped[str | None] = mapped_column(String(8), nullable=True)
    month_key: Mapped[str | None] = mapped_column(String(7), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    profile: Mapped[Profile] = relationship(back_populates="points")

    __table_args__ = (
        Index("ix_user_points_total_desc", "total_points"),
    )

    def __repr__(self) -> str:
        return f"<UserPoints user={self.user_id} total={self.total_points}>"


# ---------------------------------------------------------------------------
# PointTransaction — append-only ledger
# ---------------------------------------------------------------------------
class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_point_transactions_user_time", "user_id", "created_at"),
        Index("ix_point_transactions_action", "action_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointTransaction id={self.id} user={self.user_id} "
            f"points={self.points} action={self.action_type!r}>"
        )


# ---------------------------------------------------------------------------
# UserStreak — consecutive-day activity
# ---------------------------------------------------------------------------
class UserStreak(Base):
    __tablename__ = "user_streaks"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    profile: Mapped[Profile] = relationship(back_populates="streak")

    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_user_streaks_current_nonneg"),
        CheckConstraint(
            "longest_streak >= current_streak", name="ck_user_streaks_longest_max",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserStreak user={self.user_id} current={self.current_streak} "
            f"longest={self.longest_streak} last={self.last_activity_date}>"
        )


# ---------------------------------------------------------------------------
# DailyChallenge — one per calendar date
# ---------------------------------------------------------------------------
class DailyChallenge(Base):
    __tablename__ = "daily_challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    challenge_type: Mapped[str] = mapped_column(String(50), nullable=False)
    points_reward: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<DailyChallenge id={self.id} date={self.active_date} title={self.title!r}>"


# ---------------------------------------------------------------------------
# ChallengeCompletion — composite PK enforces one completion per member
# ---------------------------------------------------------------------------
class ChallengeCompletion(Base):
    __tablename__ = "user_challenge_completions"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("daily_challenges.id", ondelete="CASCADE"),
        primary_key=True,
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    challenge: Mapped[DailyChallenge] = relationship()

    def __repr__(self) -> str:
        return f"<ChallengeCompletion user={self.user_id} challenge={self.challenge_id}>"


# ---------------------------------------------------------------------------
# Badge — static catalog
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon_name: Mapped[str] = mapped_column(String(30), nullable=False, default="award")
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    requirement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    def __repr__(self) -> str:
        return f"<Badge id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    granted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    profile: Mapped[Profile] = relationship(back_populates="badges")
    badge: Mapped[Badge] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_id}>"


# ---------------------------------------------------------------------------
# Setting — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Values are stored as JSON strings; typed accessors live in
    :class:`~summit.engine.cache.CatalogCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
