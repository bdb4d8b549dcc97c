"""
Persistence Gateway.

The read/write primitives the progression components consume. Any storage
backend that satisfies ``PersistenceGateway`` can be injected; the package
ships the SQLAlchemy implementation in ``src.db.gateway`` and the in-memory
one below.

Contract notes:
- ``insert_earned_badge`` returns False instead of raising when the
  (user, badge) pair already exists.
- Storage failures are raised as ``PersistenceError``.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Protocol

from .models import (
    BadgeDefinition,
    EarnedBadge,
    ProgressionAccount,
    ReviewItemState,
    StreakRecord,
    XPTransaction,
)


class PersistenceGateway(Protocol):
    """Storage primitives for accounts, streaks, badges and review progress."""

    def get_or_create_account(self, user_id: str) -> ProgressionAccount: ...

    def update_account(self, user_id: str, total_xp: int, level: int) -> None: ...

    def append_transaction(
        self, user_id: str, amount: int, source: str, description: str | None
    ) -> None: ...

    def list_transactions(self, user_id: str, limit: int = 20) -> list[XPTransaction]: ...

    def get_or_create_streak(self, user_id: str) -> StreakRecord: ...

    def update_streak(
        self,
        user_id: str,
        current_streak: int,
        longest_streak: int,
        last_activity_date: date | None,
    ) -> None: ...

    def list_badge_catalog(self) -> list[BadgeDefinition]: ...

    def list_earned_badges(self, user_id: str) -> set[EarnedBadge]: ...

    def insert_earned_badge(self, user_id: str, badge_id: str) -> bool: ...

    def get_review_progress(
        self, user_id: str, content_group_key: str
    ) -> dict[str, ReviewItemState]: ...

    def upsert_review_progress(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        state: ReviewItemState,
    ) -> ReviewItemState: ...

    def count_review_progress(self, user_id: str) -> int: ...


class InMemoryGateway:
    """
    Dict-backed gateway.

    Thread-safe per call. Used by tests and by embedders that keep state in
    process; nothing survives a restart.
    """

    def __init__(self, badges: Iterable[BadgeDefinition] = ()):
        self._lock = threading.Lock()
        self._accounts: dict[str, ProgressionAccount] = {}
        self._transactions: dict[str, list[XPTransaction]] = defaultdict(list)
        self._streaks: dict[str, StreakRecord] = {}
        self._catalog: list[BadgeDefinition] = list(badges)
        self._earned: dict[str, dict[str, EarnedBadge]] = defaultdict(dict)
        self._progress: dict[tuple[str, str], dict[str, ReviewItemState]] = defaultdict(dict)

    # =========================================================================
    # Accounts
    # =========================================================================

    def get_or_create_account(self, user_id: str) -> ProgressionAccount:
        with self._lock:
            return self._accounts.setdefault(user_id, ProgressionAccount(user_id=user_id))

    def update_account(self, user_id: str, total_xp: int, level: int) -> None:
        with self._lock:
            self._accounts[user_id] = ProgressionAccount(
                user_id=user_id, total_xp=total_xp, level=level
            )

    def append_transaction(
        self, user_id: str, amount: int, source: str, description: str | None
    ) -> None:
        with self._lock:
            self._transactions[user_id].append(
                XPTransaction(
                    user_id=user_id,
                    amount=amount,
                    source=source,
                    description=description,
                    created_at=datetime.now(timezone.utc),
                )
            )

    def list_transactions(self, user_id: str, limit: int = 20) -> list[XPTransaction]:
        with self._lock:
            return list(reversed(self._transactions[user_id]))[:limit]

    # =========================================================================
    # Streaks
    # =========================================================================

    def get_or_create_streak(self, user_id: str) -> StreakRecord:
        with self._lock:
            return self._streaks.setdefault(user_id, StreakRecord(user_id=user_id))

    def update_streak(
        self,
        user_id: str,
        current_streak: int,
        longest_streak: int,
        last_activity_date: date | None,
    ) -> None:
        with self._lock:
            self._streaks[user_id] = StreakRecord(
                user_id=user_id,
                current_streak=current_streak,
                longest_streak=longest_streak,
                last_activity_date=last_activity_date,
            )

    # =========================================================================
    # Badges
    # =========================================================================

    def add_badge(self, badge: BadgeDefinition) -> None:
        """Seed one catalog entry."""
        with self._lock:
            self._catalog.append(badge)

    def list_badge_catalog(self) -> list[BadgeDefinition]:
        with self._lock:
            return sorted(self._catalog, key=lambda b: b.requirement_value)

    def list_earned_badges(self, user_id: str) -> set[EarnedBadge]:
        with self._lock:
            return set(self._earned[user_id].values())

    def insert_earned_badge(self, user_id: str, badge_id: str) -> bool:
        with self._lock:
            earned = self._earned[user_id]
            if badge_id in earned:
                return False
            earned[badge_id] = EarnedBadge(
                user_id=user_id, badge_id=badge_id, earned_at=datetime.now(timezone.utc)
            )
            return True

    # =========================================================================
    # Review Progress
    # =========================================================================

    def get_review_progress(
        self, user_id: str, content_group_key: str
    ) -> dict[str, ReviewItemState]:
        with self._lock:
            return dict(self._progress[(user_id, content_group_key)])

    def upsert_review_progress(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        state: ReviewItemState,
    ) -> ReviewItemState:
        with self._lock:
            self._progress[(user_id, content_group_key)][item_id] = state
            return state

    def count_review_progress(self, user_id: str) -> int:
        with self._lock:
            return sum(
                len(items) for (owner, _key), items in self._progress.items() if owner == user_id
            )
