"""
Learner progression engine.

Spaced-repetition scheduling plus the XP ledger, daily streaks and
achievement badges that reward study activity.
"""

from .badges import BadgeCatalog, BadgeCheckResult, BadgeEvaluator
from .exceptions import (
    InvalidAwardError,
    InvalidQualityError,
    PersistenceError,
    ProgressionError,
    ValidationError,
)
from .gateway import InMemoryGateway, PersistenceGateway
from .ledger import (
    AwardResult,
    ProgressionLedger,
    cumulative_threshold,
    level_from_xp,
    level_threshold,
    xp_progress,
)
from .models import (
    BadgeDefinition,
    BadgeEarned,
    CardStatus,
    EarnedBadge,
    LevelUp,
    ProgressionAccount,
    ProgressionEvent,
    RequirementType,
    ReviewItemState,
    StreakBonus,
    StreakRecord,
    XPAwarded,
    XPProgress,
    XPSource,
    XPTransaction,
)
from .scheduling import (
    QualityThresholds,
    SM2Config,
    SM2Scheduler,
    content_group_key,
    due_items,
    status_of,
)
from .service import DeckProgress, ProgressionService, ProgressionSummary, ReviewOutcome
from .streaks import StreakTracker, StreakUpdate, next_streak

__all__ = [
    # Scheduling
    "SM2Scheduler",
    "SM2Config",
    "QualityThresholds",
    "content_group_key",
    "due_items",
    "status_of",
    # Ledger
    "ProgressionLedger",
    "AwardResult",
    "level_threshold",
    "cumulative_threshold",
    "level_from_xp",
    "xp_progress",
    # Streaks
    "StreakTracker",
    "StreakUpdate",
    "next_streak",
    # Badges
    "BadgeCatalog",
    "BadgeCheckResult",
    "BadgeEvaluator",
    # Service
    "ProgressionService",
    "DeckProgress",
    "ReviewOutcome",
    "ProgressionSummary",
    # Gateway
    "PersistenceGateway",
    "InMemoryGateway",
    # Models
    "ReviewItemState",
    "ProgressionAccount",
    "XPTransaction",
    "XPProgress",
    "StreakRecord",
    "BadgeDefinition",
    "EarnedBadge",
    "RequirementType",
    "XPSource",
    "CardStatus",
    "ProgressionEvent",
    "XPAwarded",
    "LevelUp",
    "BadgeEarned",
    "StreakBonus",
    # Errors
    "ProgressionError",
    "ValidationError",
    "InvalidQualityError",
    "InvalidAwardError",
    "PersistenceError",
]
