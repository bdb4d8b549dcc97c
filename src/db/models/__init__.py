# SQLAlchemy models
from .base import Base
from .progression import (
    Badge,
    FlashcardProgress,
    UserBadge,
    UserStreak,
    UserXP,
    XPTransactionEntry,
)

__all__ = [
    # Base
    "Base",
    # Progression
    "UserXP",
    "XPTransactionEntry",
    "UserStreak",
    "Badge",
    "UserBadge",
    "FlashcardProgress",
]
