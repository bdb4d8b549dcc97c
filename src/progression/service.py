"""
Progression Service.

Per-user facade over the scheduling engine, ledger, streak tracker and badge
evaluator. This is the only surface callers use:

- validates caller input (quality grades, XP amounts)
- serializes each user's read-modify-write sequences behind a per-user lock
- keeps the badge catalog as a cached snapshot
- returns event values; delivering notices to the learner is the caller's job
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from loguru import logger

from config import Settings, get_settings

from .badges import BadgeCatalog, BadgeCheckResult, BadgeEvaluator
from .exceptions import InvalidAwardError, InvalidQualityError, PersistenceError
from .gateway import PersistenceGateway
from .ledger import AwardResult, ProgressionLedger, xp_progress
from .locking import UserLockRegistry
from .models import (
    BadgeDefinition,
    CardStatus,
    ProgressionAccount,
    ProgressionEvent,
    RequirementType,
    ReviewItemState,
    StreakRecord,
    XPProgress,
    XPSource,
)
from .scheduling import (
    QualityThresholds,
    SM2Config,
    SM2Scheduler,
    content_group_key,
    due_items,
    is_valid_quality,
    status_of,
)
from .streaks import StreakTracker, StreakUpdate

# =============================================================================
# Result Types
# =============================================================================


@dataclass
class DeckProgress:
    """Review progress of one batch of cards."""

    content_group_key: str
    item_ids: list[str]
    progress: dict[str, ReviewItemState]
    today: date

    @property
    def due_ids(self) -> set[str]:
        return due_items(self.item_ids, self.progress, self.today)

    @property
    def statuses(self) -> dict[str, CardStatus]:
        return {item_id: status_of(self.progress.get(item_id)) for item_id in self.item_ids}


@dataclass
class ReviewOutcome:
    """Result of grading one card."""

    item_id: str
    quality: int
    state: ReviewItemState
    progress_saved: bool = True
    streak: StreakUpdate | None = None
    events: list[ProgressionEvent] = field(default_factory=list)


@dataclass
class ProgressionSummary:
    """Read-side view of a user's progression."""

    account: ProgressionAccount
    progress: XPProgress
    streak: StreakRecord
    earned_badges: list[BadgeDefinition]


def today_in(tz_name: str) -> date:
    """Current calendar date in the named time zone."""
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return datetime.now(tz).date()


# =============================================================================
# Service
# =============================================================================


class ProgressionService:
    """Entry point for review, activity and XP events of any user."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        settings: Settings | None = None,
        scheduler: SM2Scheduler | None = None,
        today_fn: Callable[[], date] | None = None,
    ):
        """
        Initialize the service.

        Args:
            gateway: Persistence Gateway shared by all components
            settings: Tuning values (uses cached settings if None)
            scheduler: SM2Scheduler (built from settings if None)
            today_fn: Clock returning the reference calendar date
        """
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.scheduler = scheduler or SM2Scheduler(
            SM2Config(
                thresholds=QualityThresholds(
                    quick_wrong_ms=self.settings.quality_quick_wrong_ms,
                    perfect_ms=self.settings.quality_perfect_ms,
                    good_ms=self.settings.quality_good_ms,
                    hard_ms=self.settings.quality_hard_ms,
                )
            )
        )
        self._today_fn = today_fn or (lambda: today_in(self.settings.progression_timezone))

        self.locks = UserLockRegistry()
        self._catalog: BadgeCatalog | None = None
        self._catalog_lock = threading.Lock()

        self.ledger = ProgressionLedger(gateway)
        self.badges = BadgeEvaluator(
            gateway,
            self.ledger,
            self.current_catalog,
            max_depth=self.settings.badge_cascade_max_depth,
        )
        self.ledger.bind_badge_evaluator(self.badges)
        self.streaks = StreakTracker(
            gateway,
            self.ledger,
            self.badges,
            bonus_per_day=self.settings.streak_bonus_per_day,
        )

    def today(self) -> date:
        return self._today_fn()

    # =========================================================================
    # Badge Catalog
    # =========================================================================

    def refresh_catalog(self) -> BadgeCatalog:
        """Reload the catalog snapshot from the gateway."""
        catalog = BadgeCatalog(self.gateway.list_badge_catalog())
        with self._catalog_lock:
            self._catalog = catalog
        logger.debug(f"Badge catalog refreshed ({len(catalog)} badges)")
        return catalog

    def current_catalog(self) -> BadgeCatalog:
        """Cached catalog, reloaded once it is older than the configured TTL."""
        catalog = self._catalog
        if catalog is None:
            return self.refresh_catalog()
        if catalog.is_stale(self.settings.catalog_ttl_seconds):
            try:
                return self.refresh_catalog()
            except PersistenceError as e:
                logger.warning(f"Badge catalog refresh failed, keeping stale snapshot: {e}")
        return catalog

    # =========================================================================
    # Ledger, Streak, Badges
    # =========================================================================

    def award_xp(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str | None = None,
    ) -> AwardResult:
        """Grant XP to a user. Negative or non-integer amounts are rejected."""
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAwardError(amount)
        with self.locks.hold(user_id):
            return self.ledger.award(user_id, amount, source, description)

    def record_activity(self, user_id: str, today: date | None = None) -> StreakUpdate:
        """Count a day of activity towards the user's streak."""
        with self.locks.hold(user_id):
            return self.streaks.record_activity(user_id, today or self.today())

    def check_badges(
        self, user_id: str, requirement_type: str, value: int
    ) -> BadgeCheckResult:
        """Evaluate badges for an externally measured signal."""
        with self.locks.hold(user_id):
            return self.badges.check_and_award(user_id, requirement_type, value)

    # =========================================================================
    # Spaced Repetition
    # =========================================================================

    def load_deck(
        self,
        user_id: str,
        items: Mapping[str, str],
        today: date | None = None,
    ) -> DeckProgress:
        """
        Load review progress for a batch of cards.

        Args:
            user_id: Learner
            items: Card id -> front text, in deck order
            today: Reference date for due checks
        """
        key = content_group_key(items.values())
        progress = self.gateway.get_review_progress(user_id, key)
        return DeckProgress(
            content_group_key=key,
            item_ids=list(items),
            progress=progress,
            today=today or self.today(),
        )

    def record_review(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        quality: int,
        today: date | None = None,
    ) -> ReviewOutcome:
        """
        Grade one card, reschedule it and credit the learner.

        Storing the new review state must succeed (PersistenceError
        propagates). Crediting streak, XP and badges afterwards is
        best-effort: on a gateway failure the outcome carries
        ``progress_saved=False`` and the learner can move on.

        Raises:
            InvalidQualityError: If quality is not an integer 0..5
            PersistenceError: If the review state could not be stored
        """
        if not is_valid_quality(quality):
            raise InvalidQualityError(quality)
        today = today or self.today()

        with self.locks.hold(user_id):
            previous = self.gateway.get_review_progress(user_id, content_group_key).get(item_id)
            state = self.scheduler.compute_next_state(quality, previous, today)
            state = self.gateway.upsert_review_progress(user_id, item_id, content_group_key, state)
            logger.debug(
                f"Reviewed {item_id} for {user_id} (q={quality}): "
                f"interval {state.interval_days}d, EF {state.ease_factor}, next {state.next_review_at}"
            )

            outcome = ReviewOutcome(item_id=item_id, quality=quality, state=state)
            try:
                outcome.streak = self.streaks.record_activity(user_id, today)
                outcome.events.extend(outcome.streak.events)

                award = self.ledger.award(
                    user_id,
                    self.settings.flashcard_review_xp,
                    XPSource.FLASHCARD_REVIEW,
                    "Reviewed a flashcard",
                )
                outcome.events.extend(award.events)

                reviewed = self.gateway.count_review_progress(user_id)
                check = self.badges.check_and_award(
                    user_id, RequirementType.FLASHCARDS_REVIEWED, reviewed
                )
                outcome.events.extend(check.events)
            except PersistenceError as e:
                logger.warning(f"Progress not saved for {user_id} after reviewing {item_id}: {e}")
                outcome.progress_saved = False

        return outcome

    def record_response(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        response_time_ms: int,
        correct: bool,
        today: date | None = None,
    ) -> ReviewOutcome:
        """Grade a timed answer and record it as a review."""
        quality = self.scheduler.quality_from_response(response_time_ms, correct)
        return self.record_review(user_id, item_id, content_group_key, quality, today)

    def record_self_assessment(
        self,
        user_id: str,
        item_id: str,
        content_group_key: str,
        known: bool,
        today: date | None = None,
    ) -> ReviewOutcome:
        """Record a "knew it" / "didn't know it" verdict as a review."""
        quality = self.scheduler.quality_from_self_assessment(known)
        return self.record_review(user_id, item_id, content_group_key, quality, today)

    # =========================================================================
    # Read Side
    # =========================================================================

    def summary(self, user_id: str) -> ProgressionSummary:
        """Account, level progress, streak and earned badges for one user."""
        account = self.gateway.get_or_create_account(user_id)
        streak = self.gateway.get_or_create_streak(user_id)
        catalog = self.current_catalog()

        earned_ids = {e.badge_id for e in self.gateway.list_earned_badges(user_id)}
        badges = [b for b in catalog if b.id in earned_ids]

        return ProgressionSummary(
            account=account,
            progress=xp_progress(account),
            streak=streak,
            earned_badges=badges,
        )
