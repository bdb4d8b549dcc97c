"""
SQLAlchemy Persistence Gateway.

Implements ``PersistenceGateway`` on the progression tables. Each primitive
runs in its own short transaction; per-user serialization is the caller's
job (ProgressionService holds a per-user lock).

Database errors are re-raised as ``PersistenceError``. A unique-constraint
violation on ``user_badges`` is the "already earned" signal and is returned
as False.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import TypeVar

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.db.database import SessionLocal, session_scope
from src.db.models import (
    Badge,
    FlashcardProgress,
    UserBadge,
    UserStreak,
    UserXP,
    XPTransactionEntry,
)
from src.progression.exceptions import PersistenceError
from src.progression.models import (
    BadgeDefinition,
    EarnedBadge,
    ProgressionAccount,
    ReviewItemState,
    StreakRecord,
    XPTransaction,
)

T = TypeVar("T")

EARNED_BADGE_UNIQUE = "uq_user_badge"


def _is_duplicate_earned_badge(error: IntegrityError) -> bool:
    """True when ``error`` is the (user, badge) unique violation, not any other constraint."""
    diag = getattr(error.orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name == EARNED_BADGE_UNIQUE
    # SQLite names the columns instead of the constraint
    message = str(error.orig)
    return EARNED_BADGE_UNIQUE in message or (
        "UNIQUE constraint failed" in message and "user_badges.badge_id" in message
    )


def _account(row: UserXP) -> ProgressionAccount:
    return ProgressionAccount(user_id=row.user_id, total_xp=row.total_xp, level=row.level)


def _streak(row: UserStreak) -> StreakRecord:
    return StreakRecord(
        user_id=row.user_id,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
    )


def _badge(row: Badge) -> BadgeDefinition:
    return BadgeDefinition(
        id=row.id,
        name=row.name,
        description=row.description or "",
        icon=row.icon or "",
        category=row.category or "",
        requirement_type=row.requirement_type,
        requirement_value=row.requirement_value,
        xp_reward=row.xp_reward or 0,
    )


def _review_state(row: FlashcardProgress) -> ReviewItemState:
    return ReviewItemState(
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        repetitions=row.repetitions,
        next_review_at=row.next_review_at,
        last_reviewed_at=row.last_reviewed_at,
    )


class SqlProgressionGateway:
    """Persistence Gateway backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker | None = None):
        """
        Args:
            session_factory: sessionmaker to use (defaults to the app's SessionLocal)
        """
        self.session_factory = session_factory or SessionLocal

    def _run(self, action: str, work: Callable[[Session], T]) -> T:
        try:
            with session_scope(self.session_factory) as session:
                return work(session)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{action} failed: {e}") from e

    # =========================================================================
    # Accounts
    # =========================================================================

    def get_or_create_account(self, user_id: str) -> ProgressionAccount:
        def work(session: Session) -> ProgressionAccount:
            row = session.get(UserXP, user_id)
            if row is None:
                row = UserXP(user_id=user_id, total_xp=0, level=1)
                session.add(row)
                session.flush()
            return _account(row)

        try:
            return self._run(f"get_or_create_account({user_id})", work)
        except PersistenceError as e:
            # Lost a creation race: the row exists now
            if isinstance(e.__cause__, IntegrityError):
                return self._run(f"get_or_create_account({user_id})", work)
            raise

    def update_account(self, user_id: str, total_xp: int, level: int) -> None:
        def work(session: Session) -> None:
            row = session.get(UserXP, user_id)
            if row is None:
                session.add(UserXP(user_id=user_id, total_xp=total_xp, level=level))
            else:
                row.total_xp = total_xp
                row.level = level

        self._run(f"update_account({user_id})", work)

    def append_transaction(
        self, user_id: str, amount: int, source: str, description: str | None
    ) -> None:
        def work(session: Session) -> None:
            session.add(
                XPTransactionEntry(
                    user_id=user_id, amount=amount, source=source, description=description
                )
            )

        self._run(f"append_transaction({user_id})", work)

    def list_transactions(self, user_id: str, limit: int = 20) -> list[XPTransaction]:
        def work(session: Session) -> list[XPTransaction]:
            rows = session.scalars(
                select(XPTransactionEntry)
                .where(XPTransactionEntry.user_id == user_id)
                .order_by(XPTransactionEntry.id.desc())
                .limit(limit)
            )
            return [
                XPTransaction(
                    user_id=r.user_id,
                    amount=r.amount,
                    source=r.source,
                    description=r.description,
                    created_at=r.created_at,
                )
                for r in rows
            ]

        return self._run(f"list_transactions({user_id})", work)

    # =========================================================================
    # Streaks
    # =========================================================================

    def get_or_create_streak(self, user_id: str) -> StreakRecord:
        def work(session: Session) -> StreakRecord:
            row = session.get(UserStreak, user_id)
            if row is None:
                row = UserStreak(user_id=user_id, current_streak=0, longest_streak=0)
                session.add(row)
                session.flush()
            return _streak(row)

        try:
            return self._run(f"get_or_create_streak({user_id})", work)
        except PersistenceError as e:
            if isinstance(e.__cause__, IntegrityError):
                return self._run(f"get_or_create_streak({user_id})", work)
            raise

    def update_streak(
        self,
        user_id: str,
        current_streak: int,
        longest_streak: int,
        last_activity_date: date | None,
    ) -> None:
        def work(session: Session) -> None:
            row = session.get(UserStreak, user_id)
            if row is None:
                row = UserStreak(user_id=user_id)
                session.add(row)
            row.current_streak = current_streak
            row.longest_streak = longest_streak
            row.last_activity_date = last_activity_date

        self._run(f"update_streak({user_id})", work)

    # =========================================================================
    # Badges
    # =========================================================================

    def seed_badges(self, badges: Iterable[BadgeDefinition]) -> int:
        """Insert catalog entries that are not present yet. Returns the number added."""

        def work(session: Session) -> int:
            existing = set(session.scalars(select(Badge.id)))
            added = 0
            for badge in badges:
                if badge.id in existing:
                    continue
                session.add(
                    Badge(
                        id=badge.id,
                        name=badge.name,
                        description=badge.description,
                        icon=badge.icon,
                        category=badge.category,
                        requirement_type=badge.requirement_type,
                        requirement_value=badge.requirement_value,
                        xp_reward=badge.xp_reward,
                    )
                )
                added += 1
            return added

        return self._run("seed_badges", work)

    def list_badge_catalog(self) -> list[BadgeDefinition]:
        def work(session: Session) -> list[BadgeDefinition]:
            rows = session.scalars(select(Badge).order_by(Badge.requirement_value, Badge.id))
            return [_badge(r) for r in rows]

        return self._run("list_badge_catalog", work)

    def list_earned_badges(self, user_id: str) -> set[EarnedBadge]:
        def work(session: Session) -> set[EarnedBadge]:
            rows = session.scalars(select(UserBadge).where(UserBadge.user_id == user_id))
            return {
                EarnedBadge(user_id=r.user_id, badge_id=r.badge_id, earned_at=r.earned_at)
                for r in rows
            }

        return self._run(f"list_earned_badges({user_id})", work)

    def insert_earned_badge(self, user_id: str, badge_id: str) -> bool:
        def work(session: Session) -> None:
            session.add(UserBadge(user_id=user_id, badge_id=badge_id))
            session.flush()

        try:
            self._run(f"insert_earned_badge({user_id}, {badge_id})", work)
        except PersistenceError as e:
            cause = e.__cause__
            if isinstance(cause, IntegrityError) and _is_duplicate_earned_badge(cause):
                logger.debug(f"Badge {badge_id} already recorded for {user_id}")
                return False
            raise
        return True

    # =========================================================================
    # Review Progress
    # =========================================================================

    def get_review_progress(
        self, user_id: str, content_group_key: str
    ) -> dict[str, ReviewItemState]:
        def work(session: Session) -> dict[str, ReviewItemState]:
            rows = session.scalars(
                select(FlashcardProgress).where(
                    FlashcardProgress.user_id == user_id,
                    FlashcardProgress.content_hash == content_group_key,
                )
            )
            return {r.flashcard_id: _review_state(r) for r in rows}

        return self._run(f"get_review_progress({user_id}, {content_group_key})", work)

    def upsert_review_progress(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        state: ReviewItemState,
    ) -> ReviewItemState:
        def work(session: Session) -> ReviewItemState:
            row = session.scalars(
                select(FlashcardProgress).where(
                    FlashcardProgress.user_id == user_id,
                    FlashcardProgress.flashcard_id == item_id,
                    FlashcardProgress.content_hash == content_group_key,
                )
            ).one_or_none()
            if row is None:
                row = FlashcardProgress(
                    user_id=user_id, flashcard_id=item_id, content_hash=content_group_key
                )
                session.add(row)
            row.ease_factor = state.ease_factor
            row.interval_days = state.interval_days
            row.repetitions = state.repetitions
            row.next_review_at = state.next_review_at
            row.last_reviewed_at = state.last_reviewed_at
            session.flush()
            return _review_state(row)

        return self._run(f"upsert_review_progress({user_id}, {item_id})", work)

    def count_review_progress(self, user_id: str) -> int:
        def work(session: Session) -> int:
            return session.scalar(
                select(func.count())
                .select_from(FlashcardProgress)
                .where(FlashcardProgress.user_id == user_id)
            ) or 0

        return self._run(f"count_review_progress({user_id})", work)
