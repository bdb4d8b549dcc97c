"""
Progression Ledger.

Owns a user's experience total and the level derived from it. Every award
updates the account row (the source of truth) and appends a transaction to
the XP log (the audit trail). Crossing a level boundary hands off to the
badge evaluator with a ``level`` requirement.

Level curve: advancing from level L costs floor(100 * 1.5^(L-1)) XP, so
level 1 -> 2 costs 100, 2 -> 3 costs 150, 3 -> 4 costs 225, ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from .exceptions import PersistenceError
from .gateway import PersistenceGateway
from .models import (
    LevelUp,
    ProgressionAccount,
    ProgressionEvent,
    RequirementType,
    XPAwarded,
    XPProgress,
)

if TYPE_CHECKING:
    from .badges import BadgeEvaluator

BASE_LEVEL_XP = 100

# =============================================================================
# Level Curve
# =============================================================================


def level_threshold(level: int) -> int:
    """XP needed to advance from ``level`` to ``level + 1``."""
    steps = max(level, 1) - 1
    # floor(100 * 1.5^steps) in exact integer arithmetic
    return BASE_LEVEL_XP * 3**steps // 2**steps


def cumulative_threshold(level: int) -> int:
    """Total XP needed to reach ``level`` from zero."""
    return sum(level_threshold(n) for n in range(1, max(level, 1)))


def level_from_xp(total_xp: int) -> int:
    """Derive the level for an XP total. Monotonic in ``total_xp``."""
    level = 1
    needed = level_threshold(1)
    while total_xp >= needed:
        level += 1
        needed += level_threshold(level)
    return level


def xp_progress(account: ProgressionAccount) -> XPProgress:
    """Progress bar values for the account's current level."""
    current = account.total_xp - cumulative_threshold(account.level)
    needed = level_threshold(account.level)
    percentage = min(100.0, current / needed * 100)
    return XPProgress(current=current, needed=needed, percentage=percentage)


# =============================================================================
# Ledger
# =============================================================================


@dataclass
class AwardResult:
    """Outcome of one XP award, including anything it cascaded into."""

    user_id: str
    new_total_xp: int
    new_level: int
    leveled_up: bool
    events: list[ProgressionEvent] = field(default_factory=list)


class ProgressionLedger:
    """
    Applies XP awards to a user's account.

    Not thread-safe on its own: callers hold the per-user lock
    (see ProgressionService).
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self.badge_evaluator: BadgeEvaluator | None = None

    def bind_badge_evaluator(self, evaluator: BadgeEvaluator) -> None:
        """Attach the evaluator that handles level-up badge checks."""
        self.badge_evaluator = evaluator

    def award(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str | None = None,
        depth: int = 0,
    ) -> AwardResult:
        """
        Add ``amount`` XP to a user and log the transaction.

        Args:
            user_id: Account owner
            amount: XP to add (validated by the caller)
            source: Transaction source tag
            description: Optional human-readable reason
            depth: Badge cascade depth of this award (0 for direct awards)

        Returns:
            AwardResult with the new total, level and cascaded events

        Raises:
            PersistenceError: If the account could not be read or updated
        """
        source = getattr(source, "value", source)
        account = self.gateway.get_or_create_account(user_id)

        new_total = account.total_xp + amount
        new_level = level_from_xp(new_total)
        leveled_up = new_level > account.level

        update_error: PersistenceError | None = None
        try:
            self.gateway.update_account(user_id, new_total, new_level)
        except PersistenceError as e:
            update_error = e

        # The log entry is attempted even when the account write failed
        try:
            self.gateway.append_transaction(user_id, amount, source, description)
        except PersistenceError as e:
            if update_error is None:
                logger.warning(
                    f"Partial XP application for {user_id}: account at {new_total} XP "
                    f"but transaction log append failed ({source} {amount:+d}): {e}"
                )
            else:
                logger.error(f"XP award for {user_id} failed entirely ({source} {amount:+d}): {e}")

        if update_error is not None:
            logger.warning(
                f"Partial XP application for {user_id}: transaction logged "
                f"but account update failed ({source} {amount:+d}): {update_error}"
            )
            raise update_error

        logger.info(
            f"Awarded {amount} XP to {user_id} ({source}): "
            f"{account.total_xp} -> {new_total}, level {new_level}"
        )

        result = AwardResult(
            user_id=user_id,
            new_total_xp=new_total,
            new_level=new_level,
            leveled_up=leveled_up,
            events=[XPAwarded(amount=amount, source=source, description=description)],
        )

        if leveled_up:
            result.events.append(LevelUp(previous_level=account.level, new_level=new_level))
            if self.badge_evaluator is not None:
                check = self.badge_evaluator.check_and_award(
                    user_id, RequirementType.LEVEL, new_level, depth=depth
                )
                # Cascaded badge XP shows up as events, not in this award's totals
                result.events.extend(check.events)

        return result
