"""
Unit tests for badge evaluation.

Tests catalog snapshots, at-most-once awards, and the cascade depth cap
for badge -> level-up -> badge chains.
"""

import pytest
from loguru import logger

from src.progression import (
    BadgeCatalog,
    BadgeDefinition,
    BadgeEarned,
    BadgeEvaluator,
    InMemoryGateway,
    PersistenceError,
    ProgressionLedger,
    RequirementType,
)


def make_evaluator(badges, gateway=None, max_depth=2):
    gateway = gateway or InMemoryGateway(badges)
    ledger = ProgressionLedger(gateway)
    evaluator = BadgeEvaluator(gateway, ledger, BadgeCatalog(badges), max_depth=max_depth)
    ledger.bind_badge_evaluator(evaluator)
    return gateway, ledger, evaluator


class StaleReadGateway(InMemoryGateway):
    """Earned-set reads always come back empty, as in a racing reader."""

    def list_earned_badges(self, user_id):
        return set()


class TestBadgeCatalog:
    def test_ordered_by_requirement_value(self, sample_badges):
        catalog = BadgeCatalog(reversed(sample_badges))

        values = [b.requirement_value for b in catalog]
        assert values == sorted(values)
        assert len(catalog) == 4

    def test_eligible_filters_type_and_threshold(self, sample_badges):
        catalog = BadgeCatalog(sample_badges)

        assert [b.id for b in catalog.eligible(RequirementType.STREAK_DAYS, 2)] == []
        assert [b.id for b in catalog.eligible("streak_days", 3)] == ["streak-3"]
        assert [b.id for b in catalog.eligible("streak_days", 30)] == ["streak-3", "streak-7"]

    def test_get(self, sample_badges):
        catalog = BadgeCatalog(sample_badges)

        assert catalog.get("level-2").name == "Rising Star"
        assert catalog.get("missing") is None

    def test_staleness(self):
        catalog = BadgeCatalog()

        assert catalog.is_stale(0)
        assert not catalog.is_stale(3600)


class TestCheckAndAward:
    """Tests for BadgeEvaluator.check_and_award."""

    def test_awards_badge_and_xp(self, sample_badges):
        gateway, _, evaluator = make_evaluator(sample_badges)

        result = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)

        assert [b.id for b in result.earned] == ["streak-3"]
        assert BadgeEarned(badge=sample_badges[1]) in result.events
        assert gateway.get_or_create_account("alice").total_xp == 15
        tx = gateway.list_transactions("alice")[0]
        assert tx.source == "badge"
        assert tx.description == 'Earned "On Fire" badge!'

    def test_idempotent(self, sample_badges):
        """A second check with the same value awards nothing."""
        gateway, _, evaluator = make_evaluator(sample_badges)

        evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)
        again = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 5)

        assert again.earned == []
        assert again.events == []
        assert gateway.get_or_create_account("alice").total_xp == 15

    def test_zero_reward_badge_grants_no_xp(self, sample_badges):
        gateway, _, evaluator = make_evaluator(sample_badges)
        evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)

        result = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 7)

        assert [b.id for b in result.earned] == ["streak-7"]
        assert gateway.get_or_create_account("alice").total_xp == 15
        assert len(gateway.list_transactions("alice")) == 1

    def test_below_threshold(self, sample_badges):
        gateway, _, evaluator = make_evaluator(sample_badges)

        result = evaluator.check_and_award("alice", RequirementType.LEVEL, 1)

        assert result.earned == []
        assert gateway.list_earned_badges("alice") == set()

    def test_unique_constraint_guards_stale_reads(self, sample_badges):
        """The insert guard holds even when the earned-set read misses."""
        gateway = StaleReadGateway(sample_badges)
        gateway, _, evaluator = make_evaluator(sample_badges, gateway=gateway)

        first = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)
        second = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)

        assert len(first.earned) == 1
        assert second.earned == []
        assert gateway.get_or_create_account("alice").total_xp == 15

    def test_duplicate_insert_returns_false(self):
        gateway = InMemoryGateway()

        assert gateway.insert_earned_badge("alice", "streak-3") is True
        assert gateway.insert_earned_badge("alice", "streak-3") is False
        assert gateway.insert_earned_badge("bob", "streak-3") is True


class TestCascade:
    """Badge XP can level a user up, which can unlock level badges."""

    @pytest.fixture
    def cascade_badges(self):
        return [
            BadgeDefinition(
                id="streak-3",
                name="On Fire",
                requirement_type="streak_days",
                requirement_value=3,
                xp_reward=100,
            ),
            BadgeDefinition(
                id="level-2",
                name="Rising Star",
                requirement_type="level",
                requirement_value=2,
                xp_reward=10,
            ),
        ]

    def test_cascade_within_depth(self, cascade_badges):
        gateway, _, evaluator = make_evaluator(cascade_badges)

        result = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)

        earned = [e.badge.id for e in result.events if isinstance(e, BadgeEarned)]
        assert earned == ["streak-3", "level-2"]
        account = gateway.get_or_create_account("alice")
        assert account.total_xp == 110
        assert account.level == 2

    def test_depth_cap_stops_cascade(self, cascade_badges):
        """With max_depth=0 the level-up from badge XP is not evaluated."""
        gateway, _, evaluator = make_evaluator(cascade_badges, max_depth=0)

        result = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)

        assert [b.id for b in result.earned] == ["streak-3"]
        assert {e.badge_id for e in gateway.list_earned_badges("alice")} == {"streak-3"}
        assert gateway.get_or_create_account("alice").total_xp == 100

    def test_check_beyond_depth_is_noop(self, cascade_badges):
        gateway, _, evaluator = make_evaluator(cascade_badges, max_depth=2)

        result = evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3, depth=3)

        assert result.earned == []
        assert gateway.list_earned_badges("alice") == set()

    def test_catalog_callable_is_read_per_check(self, cascade_badges):
        gateway = InMemoryGateway()
        ledger = ProgressionLedger(gateway)
        snapshots = [BadgeCatalog(), BadgeCatalog(cascade_badges)]
        evaluator = BadgeEvaluator(gateway, ledger, lambda: snapshots[0])

        assert evaluator.check_and_award("alice", "streak_days", 3).earned == []
        snapshots.pop(0)
        assert [b.id for b in evaluator.check_and_award("alice", "streak_days", 3).earned] == [
            "streak-3"
        ]


class TestRewardFailure:
    """A badge stored without its XP reward is reported as a partial application."""

    def test_reward_failure_is_logged_and_raised(self, sample_badges):
        class FailingAccountGateway(InMemoryGateway):
            def update_account(self, user_id, total_xp, level):
                raise PersistenceError("account table unavailable")

        gateway, _, evaluator = make_evaluator(sample_badges, gateway=FailingAccountGateway(sample_badges))
        errors = []
        handler_id = logger.add(lambda m: errors.append(m.record["message"]), level="ERROR")
        try:
            with pytest.raises(PersistenceError):
                evaluator.check_and_award("alice", RequirementType.STREAK_DAYS, 3)
        finally:
            logger.remove(handler_id)

        assert {e.badge_id for e in gateway.list_earned_badges("alice")} == {"streak-3"}
        assert gateway.get_or_create_account("alice").total_xp == 0
        assert any("streak-3 stored" in m and "15 XP reward was not granted" in m for m in errors)
