"""
Progression models.

Tables behind the Persistence Gateway:
- user_xp: experience total and derived level per user
- xp_transactions: append-only XP log
- user_streaks: daily activity streak per user
- badges: static badge catalog
- user_badges: earned badges, unique per (user, badge)
- flashcard_progress: SM-2 state per (user, flashcard, content group)

Column types stay portable so the same schema runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class UserXP(Base):
    """Experience account. The row is authoritative; the log is diagnostic."""

    __tablename__ = "user_xp"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserXP user={self.user_id} xp={self.total_xp} level={self.level}>"


class XPTransactionEntry(Base):
    """One XP award. Never updated or deleted."""

    __tablename__ = "xp_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)  # 'quiz', 'streak', 'badge', ...
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (Index("idx_xp_transactions_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<XPTransactionEntry user={self.user_id} {self.amount:+d} ({self.source})>"


class UserStreak(Base):
    """Daily activity streak."""

    __tablename__ = "user_streaks"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[date | None] = mapped_column(Date)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<UserStreak user={self.user_id} current={self.current_streak} "
            f"longest={self.longest_streak}>"
        )


class Badge(Base):
    """Badge catalog entry. Seeded externally, read-only at runtime."""

    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    icon: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(Text, default="")
    requirement_type: Mapped[str] = mapped_column(
        Text, nullable=False
    )  # 'level', 'streak_days', 'flashcards_reviewed', ...
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    earned_by: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    __table_args__ = (Index("idx_badges_requirement", "requirement_type", "requirement_value"),)

    def __repr__(self) -> str:
        return f"<Badge {self.id} {self.requirement_type}>={self.requirement_value}>"


class UserBadge(Base):
    """A badge earned by a user. At most one row per (user, badge)."""

    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    badge_id: Mapped[str] = mapped_column(
        ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    badge: Mapped[Badge] = relationship(back_populates="earned_by")

    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),)

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_id}>"


class FlashcardProgress(Base):
    """SM-2 review state of one flashcard inside one content group."""

    __tablename__ = "flashcard_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    flashcard_id: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(Text, nullable=False)

    ease_factor: Mapped[float] = mapped_column(Float, default=2.5, nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_review_at: Mapped[date] = mapped_column(Date, nullable=False)
    last_reviewed_at: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "flashcard_id", "content_hash", name="uq_flashcard_progress"),
        Index("idx_flashcard_progress_group", "user_id", "content_hash"),
    )

    def __repr__(self) -> str:
        return (
            f"<FlashcardProgress user={self.user_id} card={self.flashcard_id} "
            f"interval={self.interval_days} reps={self.repetitions}>"
        )
