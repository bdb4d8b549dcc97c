"""
SM-2 Spaced Repetition Scheduling Engine.

Implements:
- SM-2 next-state computation for a single learning item
- Due-item selection and derived card status
- Response-time grading into the SM-2 quality scale
- Content group keys used to scope progress to a batch of cards

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall

Everything in this module is pure: no I/O, no clock reads unless the caller
omits ``today``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta

from .models import CardStatus, ReviewItemState

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
MASTERED_INTERVAL_DAYS = 21

# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class QualityThresholds:
    """Response-time cut-offs (milliseconds) for grading a timed answer."""

    quick_wrong_ms: int = 2000
    perfect_ms: int = 1500
    good_ms: int = 3000
    hard_ms: int = 5000

    def __post_init__(self) -> None:
        if not (0 < self.perfect_ms < self.good_ms < self.hard_ms):
            raise ValueError(
                "Quality thresholds must satisfy 0 < perfect_ms < good_ms < hard_ms, "
                f"got {self.perfect_ms}/{self.good_ms}/{self.hard_ms}"
            )
        if self.quick_wrong_ms <= 0:
            raise ValueError(f"quick_wrong_ms must be positive, got {self.quick_wrong_ms}")


@dataclass(frozen=True)
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days after the first successful recall
    second_interval: int = 6  # Days after the second successful recall
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


# =============================================================================
# SM-2 Algorithm
# =============================================================================


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each item has:
    - Ease Factor (EF): growth multiplier for the interval (2.5 default, min 1.3)
    - Interval: Days until next review (0 after a failed recall)
    - Repetitions: Consecutive successful recalls
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def compute_next_state(
        self,
        quality: int,
        previous: ReviewItemState | None = None,
        today: date | None = None,
    ) -> ReviewItemState:
        """
        Compute the review state that follows a graded recall.

        Args:
            quality: Recall quality 0-5, already validated by the caller
            previous: Current state (None for a never-reviewed item)
            today: Review date (defaults to date.today())

        Returns:
            A new ReviewItemState; ``previous`` is left untouched
        """
        today = today or date.today()

        if previous is None:
            ease = self.config.initial_easiness
            interval = 0
            repetitions = 0
        else:
            ease = previous.ease_factor
            interval = previous.interval_days
            repetitions = previous.repetitions

        if quality < PASSING_QUALITY:
            # Failed - reset to beginning
            repetitions = 0
            interval = 0
        else:
            repetitions += 1
            if repetitions == 1:
                interval = self.config.first_interval
            elif repetitions == 2:
                interval = self.config.second_interval
            else:
                # Interval grows by the ease the item carried into this review
                interval = int(_round_half_up(interval * ease))

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        miss = MAX_QUALITY - quality
        ease = max(self.config.minimum_easiness, ease + 0.1 - miss * (0.08 + miss * 0.02))
        ease = _round_half_up(ease, 2)

        return ReviewItemState(
            ease_factor=ease,
            interval_days=interval,
            repetitions=repetitions,
            next_review_at=today + timedelta(days=interval),
            last_reviewed_at=today,
        )

    def quality_from_response(self, response_time_ms: int, correct: bool) -> int:
        """
        Convert a timed answer to an SM-2 grade.

        A correct answer never grades below 3; a wrong one never above 1.
        """
        thresholds = self.config.thresholds

        if not correct:
            # Quick wrong = guess, slow wrong = blackout
            return 1 if response_time_ms < thresholds.quick_wrong_ms else 0

        if response_time_ms < thresholds.perfect_ms:
            return 5
        if response_time_ms < thresholds.good_ms:
            return 4
        return 3

    @staticmethod
    def quality_from_self_assessment(known: bool) -> int:
        """Grade for the "knew it / didn't know it" shortcut buttons."""
        return 4 if known else 1


# =============================================================================
# Companion Functions
# =============================================================================


def is_valid_quality(quality: object) -> bool:
    """Check that a value is an integer grade on the 0-5 scale."""
    return (
        isinstance(quality, int)
        and not isinstance(quality, bool)
        and MIN_QUALITY <= quality <= MAX_QUALITY
    )


def due_items(
    items: Iterable[str],
    progress_by_item: Mapping[str, ReviewItemState],
    now: date | None = None,
) -> set[str]:
    """Return the ids of items with no progress or a review date on/before ``now``."""
    now = now or date.today()
    due: set[str] = set()
    for item_id in items:
        progress = progress_by_item.get(item_id)
        if progress is None or progress.next_review_at is None or progress.next_review_at <= now:
            due.add(item_id)
    return due


def status_of(progress: ReviewItemState | None) -> CardStatus:
    """Classify an item from its review state."""
    if progress is None:
        return CardStatus.NEW
    if progress.repetitions == 0:
        return CardStatus.LEARNING
    if progress.interval_days >= MASTERED_INTERVAL_DAYS:
        return CardStatus.MASTERED
    return CardStatus.REVIEW


def _to_base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def content_group_key(fronts: Iterable[str]) -> str:
    """
    Fingerprint a batch of cards by their front text.

    The fronts are joined with ``|`` and run through a 31-multiplier string
    hash wrapped to a signed 32-bit integer over UTF-16 code units; the
    absolute value is rendered in base 36. This reproduces the keys already
    stored by the web client.

    The hash is weak: two batches with identical fronts always share a key,
    and unrelated batches can collide. Colliding batches share review
    progress. That sharing is the existing behaviour and callers rely on it,
    so do not swap in a stronger digest without migrating stored keys.
    """
    text = "|".join(fronts)
    encoded = text.encode("utf-16-le")

    value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + code_unit) & 0xFFFFFFFF

    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(abs(value))
