"""
Badge Evaluator.

Decides which achievement badges a user unlocks for a given signal and
awards each one at most once per user. Two guards keep awards idempotent:

1. The user's earned set is read and already-earned badges are skipped.
2. The gateway's unique (user, badge) constraint rejects a duplicate insert;
   that rejection means "already earned" and is not an error.

Guard 1 can race under concurrent evaluation, guard 2 cannot.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from .exceptions import PersistenceError
from .gateway import PersistenceGateway
from .models import BadgeDefinition, BadgeEarned, ProgressionEvent, XPSource

if TYPE_CHECKING:
    from .ledger import ProgressionLedger

DEFAULT_MAX_DEPTH = 2

# =============================================================================
# Catalog Snapshot
# =============================================================================


class BadgeCatalog:
    """Read-only snapshot of the badge catalog, ordered by requirement value."""

    def __init__(self, badges: Iterable[BadgeDefinition] = ()):
        self._badges = tuple(sorted(badges, key=lambda b: (b.requirement_value, b.id)))
        self.loaded_at = time.monotonic()

    def __len__(self) -> int:
        return len(self._badges)

    def __iter__(self):
        return iter(self._badges)

    def get(self, badge_id: str) -> BadgeDefinition | None:
        for badge in self._badges:
            if badge.id == badge_id:
                return badge
        return None

    def eligible(self, requirement_type: str, value: int) -> list[BadgeDefinition]:
        """Badges of ``requirement_type`` whose threshold ``value`` meets."""
        requirement_type = getattr(requirement_type, "value", requirement_type)
        return [
            b
            for b in self._badges
            if b.requirement_type == requirement_type and b.requirement_value <= value
        ]

    def is_stale(self, ttl_seconds: float) -> bool:
        return time.monotonic() - self.loaded_at >= ttl_seconds


# =============================================================================
# Evaluator
# =============================================================================


@dataclass
class BadgeCheckResult:
    """Badges unlocked by one check, plus events from their XP rewards."""

    earned: list[BadgeDefinition] = field(default_factory=list)
    events: list[ProgressionEvent] = field(default_factory=list)


class BadgeEvaluator:
    """Awards catalog badges whose thresholds a user has crossed."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        ledger: ProgressionLedger,
        catalog: BadgeCatalog | Callable[[], BadgeCatalog],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """
        Args:
            gateway: Persistence Gateway for earned-badge reads and inserts
            ledger: Ledger that receives badge XP rewards
            catalog: A catalog snapshot, or a callable returning the current one
            max_depth: Deepest badge -> level-up -> badge cascade evaluated
        """
        self.gateway = gateway
        self.ledger = ledger
        self._catalog = catalog
        self.max_depth = max_depth

    @property
    def catalog(self) -> BadgeCatalog:
        if callable(self._catalog):
            return self._catalog()
        return self._catalog

    def check_and_award(
        self,
        user_id: str,
        requirement_type: str,
        value: int,
        depth: int = 0,
    ) -> BadgeCheckResult:
        """
        Award every unearned badge of ``requirement_type`` that ``value`` reaches.

        Args:
            user_id: User being evaluated
            requirement_type: Signal kind (level, streak_days, ...)
            value: Current value of that signal
            depth: Cascade depth; checks deeper than max_depth are skipped
        """
        result = BadgeCheckResult()
        requirement_type = getattr(requirement_type, "value", requirement_type)

        if depth > self.max_depth:
            logger.debug(
                f"Badge cascade for {user_id} stopped at depth {depth} ({requirement_type}={value})"
            )
            return result

        candidates = self.catalog.eligible(requirement_type, value)
        if not candidates:
            return result

        earned_ids = {e.badge_id for e in self.gateway.list_earned_badges(user_id)}

        for badge in candidates:
            if badge.id in earned_ids:
                continue

            if not self.gateway.insert_earned_badge(user_id, badge.id):
                logger.debug(f"Badge {badge.id} already earned by {user_id}")
                continue

            earned_ids.add(badge.id)
            result.earned.append(badge)
            result.events.append(BadgeEarned(badge=badge))
            logger.info(f"User {user_id} earned badge {badge.name!r} ({requirement_type}={value})")

            if badge.xp_reward > 0:
                try:
                    award = self.ledger.award(
                        user_id,
                        badge.xp_reward,
                        XPSource.BADGE,
                        f'Earned "{badge.name}" badge!',
                        depth=depth + 1,
                    )
                except PersistenceError as e:
                    logger.error(
                        f"Partial badge application for {user_id}: badge {badge.id} stored "
                        f"but its {badge.xp_reward} XP reward was not granted: {e}"
                    )
                    raise
                result.events.extend(award.events)

        return result
