"""
Progression Data Model.

Plain value objects shared by the scheduling engine, the ledger, the streak
tracker and the badge evaluator. Gateways translate their storage rows into
these; nothing here knows about a database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Union

# =============================================================================
# Enumerations
# =============================================================================


class RequirementType(str, Enum):
    """Signal a badge threshold is measured against."""

    LEVEL = "level"
    STREAK_DAYS = "streak_days"
    FLASHCARDS_REVIEWED = "flashcards_reviewed"
    TESTS_COMPLETED = "tests_completed"


class XPSource(str, Enum):
    """Source tags written to the XP transaction log."""

    QUIZ = "quiz"
    TEST = "test"
    FLASHCARD = "flashcard"
    FLASHCARD_REVIEW = "flashcard_review"
    STREAK = "streak"
    BADGE = "badge"


class CardStatus(str, Enum):
    """Derived review status of one item (never stored)."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


# =============================================================================
# Spaced Repetition
# =============================================================================


@dataclass(frozen=True)
class ReviewItemState:
    """SM-2 state of one learning item for one user."""

    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    next_review_at: date | None = None
    last_reviewed_at: date | None = None


# =============================================================================
# Ledger, Streak, Badges
# =============================================================================


@dataclass(frozen=True)
class ProgressionAccount:
    """A user's experience total and the level derived from it."""

    user_id: str
    total_xp: int = 0
    level: int = 1


@dataclass(frozen=True)
class XPTransaction:
    """One append-only XP log entry."""

    user_id: str
    amount: int
    source: str
    description: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class XPProgress:
    """Progress within the current level."""

    current: int
    needed: int
    percentage: float


@dataclass(frozen=True)
class StreakRecord:
    """Daily-activity streak of one user."""

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None


@dataclass(frozen=True)
class BadgeDefinition:
    """Static catalog entry describing an unlockable badge."""

    id: str
    name: str
    requirement_type: str
    requirement_value: int
    xp_reward: int = 0
    description: str = ""
    icon: str = ""
    category: str = ""


@dataclass(frozen=True)
class EarnedBadge:
    """Unlock record for one (user, badge) pair."""

    user_id: str
    badge_id: str
    earned_at: datetime | None = field(default=None, compare=False, hash=False)


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class XPAwarded:
    amount: int
    source: str
    description: str | None = None


@dataclass(frozen=True)
class LevelUp:
    previous_level: int
    new_level: int


@dataclass(frozen=True)
class BadgeEarned:
    badge: BadgeDefinition


@dataclass(frozen=True)
class StreakBonus:
    streak_days: int
    xp: int


ProgressionEvent = Union[XPAwarded, LevelUp, BadgeEarned, StreakBonus]
