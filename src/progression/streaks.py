"""
Streak Tracker.

State machine over (current_streak, longest_streak, last_activity_date),
advanced once per calendar day of activity:

- same day as the last activity  -> unchanged (no double counting)
- the day after the last activity -> streak + 1
- anything else (gap or first use) -> streak restarts at 1

Extending a streak past one day earns ``bonus_per_day * streak`` XP.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from loguru import logger

from .badges import BadgeEvaluator
from .exceptions import PersistenceError
from .gateway import PersistenceGateway
from .ledger import ProgressionLedger
from .models import ProgressionEvent, RequirementType, StreakBonus, StreakRecord, XPSource

DEFAULT_BONUS_PER_DAY = 5


def next_streak(record: StreakRecord, today: date) -> StreakRecord:
    """Pure transition of a streak record for activity on ``today``."""
    last = record.last_activity_date
    if last == today:
        return record

    if last is not None and last == today - timedelta(days=1):
        current = record.current_streak + 1
    else:
        current = 1

    return replace(
        record,
        current_streak=current,
        longest_streak=max(record.longest_streak, current),
        last_activity_date=today,
    )


@dataclass
class StreakUpdate:
    """Outcome of recording one activity."""

    record: StreakRecord
    changed: bool
    bonus_xp: int = 0
    events: list[ProgressionEvent] = field(default_factory=list)


class StreakTracker:
    """Records daily activity and pays out streak bonuses."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        ledger: ProgressionLedger,
        badge_evaluator: BadgeEvaluator,
        bonus_per_day: int = DEFAULT_BONUS_PER_DAY,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.badge_evaluator = badge_evaluator
        self.bonus_per_day = bonus_per_day

    def record_activity(self, user_id: str, today: date) -> StreakUpdate:
        """
        Advance the user's streak for activity on ``today``.

        Raises:
            PersistenceError: If the streak could not be read or stored, or
                the streak bonus could not be awarded after the streak was
                stored (logged as a partial application, never retried here)
        """
        record = self.gateway.get_or_create_streak(user_id)
        updated = next_streak(record, today)

        if updated is record:
            logger.debug(f"Streak for {user_id} already counted on {today}")
            return StreakUpdate(record=record, changed=False)

        self.gateway.update_streak(
            user_id,
            updated.current_streak,
            updated.longest_streak,
            updated.last_activity_date,
        )
        logger.info(
            f"Streak for {user_id}: {record.current_streak} -> {updated.current_streak} "
            f"(longest {updated.longest_streak})"
        )

        result = StreakUpdate(record=updated, changed=True)

        if updated.current_streak > 1:
            bonus = self.bonus_per_day * updated.current_streak
            try:
                award = self.ledger.award(
                    user_id,
                    bonus,
                    XPSource.STREAK,
                    f"{updated.current_streak}-day streak bonus!",
                )
            except PersistenceError as e:
                logger.error(
                    f"Partial streak application for {user_id}: streak stored at "
                    f"{updated.current_streak} days but the {bonus} XP bonus was not awarded: {e}"
                )
                raise
            result.bonus_xp = bonus
            result.events.append(StreakBonus(streak_days=updated.current_streak, xp=bonus))
            result.events.extend(award.events)

        check = self.badge_evaluator.check_and_award(
            user_id, RequirementType.STREAK_DAYS, updated.current_streak
        )
        result.events.extend(check.events)
        return result
