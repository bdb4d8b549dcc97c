"""
Unit tests for the XP ledger.

Tests the level curve, award bookkeeping, and how partial persistence
failures are reported.
"""

import pytest
from loguru import logger

from src.progression import (
    InMemoryGateway,
    LevelUp,
    PersistenceError,
    ProgressionAccount,
    ProgressionLedger,
    XPAwarded,
    XPSource,
    cumulative_threshold,
    level_from_xp,
    level_threshold,
    xp_progress,
)


class FailingAccountGateway(InMemoryGateway):
    """Account writes fail, everything else works."""

    def update_account(self, user_id, total_xp, level):
        raise PersistenceError("account table unavailable")


class FailingLogGateway(InMemoryGateway):
    """Transaction log appends fail, everything else works."""

    def append_transaction(self, user_id, amount, source, description):
        raise PersistenceError("transaction log unavailable")


@pytest.fixture
def log_messages():
    """Capture loguru records at WARNING and above."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record), level="WARNING")
    yield messages
    logger.remove(handler_id)


class TestLevelCurve:
    """Tests for level thresholds and derived levels."""

    @pytest.mark.parametrize("level,expected", [(1, 100), (2, 150), (3, 225), (4, 337), (5, 506)])
    def test_threshold_values(self, level, expected):
        """Each level costs floor(100 * 1.5^(L-1))."""
        assert level_threshold(level) == expected

    @pytest.mark.parametrize("level,expected", [(1, 0), (2, 100), (3, 250), (4, 475)])
    def test_cumulative_threshold(self, level, expected):
        assert cumulative_threshold(level) == expected

    @pytest.mark.parametrize(
        "total_xp,expected",
        [(0, 1), (99, 1), (100, 2), (249, 2), (250, 3), (474, 3), (475, 4)],
    )
    def test_level_from_xp(self, total_xp, expected):
        assert level_from_xp(total_xp) == expected

    def test_level_is_monotonic(self):
        levels = [level_from_xp(xp) for xp in range(0, 5000, 7)]
        assert levels == sorted(levels)

    def test_level_boundaries_match_cumulative_thresholds(self):
        for level in range(1, 12):
            start = cumulative_threshold(level)
            assert level_from_xp(start) == level
            if start > 0:
                assert level_from_xp(start - 1) == level - 1


class TestXPProgress:
    def test_progress_within_level(self):
        progress = xp_progress(ProgressionAccount(user_id="u", total_xp=105, level=2))

        assert progress.current == 5
        assert progress.needed == 150
        assert progress.percentage == pytest.approx(100 * 5 / 150)

    def test_fresh_account(self):
        progress = xp_progress(ProgressionAccount(user_id="u"))

        assert progress.current == 0
        assert progress.needed == 100
        assert progress.percentage == 0


class TestAward:
    """Tests for ProgressionLedger.award."""

    def test_awards_accumulate(self):
        """50 + 30 + 25 reaches level 2 only on the third award."""
        gateway = InMemoryGateway()
        ledger = ProgressionLedger(gateway)

        first = ledger.award("alice", 50, XPSource.QUIZ)
        second = ledger.award("alice", 30, XPSource.QUIZ)
        third = ledger.award("alice", 25, XPSource.QUIZ)

        assert (first.new_total_xp, first.new_level, first.leveled_up) == (50, 1, False)
        assert (second.new_total_xp, second.new_level, second.leveled_up) == (80, 1, False)
        assert (third.new_total_xp, third.new_level, third.leveled_up) == (105, 2, True)

        account = gateway.get_or_create_account("alice")
        assert account.total_xp == 105
        assert account.level == 2

    def test_events(self):
        ledger = ProgressionLedger(InMemoryGateway())

        result = ledger.award("alice", 120, XPSource.TEST, "Passed a test")

        assert result.events == [
            XPAwarded(amount=120, source="test", description="Passed a test"),
            LevelUp(previous_level=1, new_level=2),
        ]

    def test_multi_level_jump(self):
        ledger = ProgressionLedger(InMemoryGateway())

        result = ledger.award("alice", 500, "quiz")

        assert result.new_level == 4
        assert LevelUp(previous_level=1, new_level=4) in result.events

    def test_transaction_logged_per_award(self):
        gateway = InMemoryGateway()
        ledger = ProgressionLedger(gateway)

        ledger.award("alice", 10, XPSource.QUIZ, "first")
        ledger.award("alice", 20, XPSource.STREAK, "second")

        log = gateway.list_transactions("alice")
        assert [(tx.amount, tx.source, tx.description) for tx in log] == [
            (20, "streak", "second"),
            (10, "quiz", "first"),
        ]

    def test_account_total_equals_log_sum(self):
        gateway = InMemoryGateway()
        ledger = ProgressionLedger(gateway)
        for amount in (5, 0, 40, 77, 3):
            ledger.award("bob", amount, XPSource.QUIZ)

        log = gateway.list_transactions("bob", limit=100)
        assert gateway.get_or_create_account("bob").total_xp == sum(tx.amount for tx in log)

    def test_users_are_independent(self):
        gateway = InMemoryGateway()
        ledger = ProgressionLedger(gateway)

        ledger.award("alice", 150, XPSource.QUIZ)

        assert gateway.get_or_create_account("bob").total_xp == 0


class TestPartialFailures:
    """The two writes of an award can fail independently."""

    def test_account_failure_raises_but_still_logs_transaction(self, log_messages):
        gateway = FailingAccountGateway()
        ledger = ProgressionLedger(gateway)

        with pytest.raises(PersistenceError):
            ledger.award("alice", 40, XPSource.QUIZ)

        assert gateway.get_or_create_account("alice").total_xp == 0
        assert len(gateway.list_transactions("alice")) == 1
        assert any("Partial XP application" in m["message"] for m in log_messages)

    def test_log_failure_keeps_account_update(self, log_messages):
        gateway = FailingLogGateway()
        ledger = ProgressionLedger(gateway)

        result = ledger.award("alice", 40, XPSource.QUIZ)

        assert result.new_total_xp == 40
        assert gateway.get_or_create_account("alice").total_xp == 40
        assert gateway.list_transactions("alice") == []
        assert any("transaction log append failed" in m["message"] for m in log_messages)
