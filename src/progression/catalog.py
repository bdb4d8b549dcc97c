"""Default badge catalog seeded by ``progression seed-badges``."""

from __future__ import annotations

from .models import BadgeDefinition, RequirementType

DEFAULT_BADGES: tuple[BadgeDefinition, ...] = (
    # Levels
    BadgeDefinition(
        id="level-2",
        name="Rising Star",
        description="Reach level 2",
        icon="⭐",
        category="level",
        requirement_type=RequirementType.LEVEL.value,
        requirement_value=2,
        xp_reward=10,
    ),
    BadgeDefinition(
        id="level-5",
        name="Scholar",
        description="Reach level 5",
        icon="🎓",
        category="level",
        requirement_type=RequirementType.LEVEL.value,
        requirement_value=5,
        xp_reward=50,
    ),
    BadgeDefinition(
        id="level-10",
        name="Sage",
        description="Reach level 10",
        icon="🧠",
        category="level",
        requirement_type=RequirementType.LEVEL.value,
        requirement_value=10,
        xp_reward=200,
    ),
    # Streaks
    BadgeDefinition(
        id="streak-3",
        name="On Fire",
        description="Study 3 days in a row",
        icon="🔥",
        category="streak",
        requirement_type=RequirementType.STREAK_DAYS.value,
        requirement_value=3,
        xp_reward=15,
    ),
    BadgeDefinition(
        id="streak-7",
        name="Week Warrior",
        description="Study 7 days in a row",
        icon="📅",
        category="streak",
        requirement_type=RequirementType.STREAK_DAYS.value,
        requirement_value=7,
        xp_reward=50,
    ),
    BadgeDefinition(
        id="streak-30",
        name="Unstoppable",
        description="Study 30 days in a row",
        icon="🏆",
        category="streak",
        requirement_type=RequirementType.STREAK_DAYS.value,
        requirement_value=30,
        xp_reward=300,
    ),
    # Flashcards
    BadgeDefinition(
        id="cards-10",
        name="Card Starter",
        description="Review 10 flashcards",
        icon="🃏",
        category="flashcards",
        requirement_type=RequirementType.FLASHCARDS_REVIEWED.value,
        requirement_value=10,
        xp_reward=20,
    ),
    BadgeDefinition(
        id="cards-50",
        name="Card Collector",
        description="Review 50 flashcards",
        icon="📚",
        category="flashcards",
        requirement_type=RequirementType.FLASHCARDS_REVIEWED.value,
        requirement_value=50,
        xp_reward=75,
    ),
    BadgeDefinition(
        id="cards-100",
        name="Memory Master",
        description="Review 100 flashcards",
        icon="💎",
        category="flashcards",
        requirement_type=RequirementType.FLASHCARDS_REVIEWED.value,
        requirement_value=100,
        xp_reward=150,
    ),
)
