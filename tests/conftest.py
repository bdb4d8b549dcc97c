"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.progression import BadgeDefinition, InMemoryGateway, ProgressionService  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite in memory)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Default tuning, isolated from any local .env file."""
    return Settings(_env_file=None, log_file=None)


@pytest.fixture
def today():
    """Fixed reference date."""
    return date(2024, 3, 10)


@pytest.fixture
def gateway():
    """Empty in-memory gateway."""
    return InMemoryGateway()


@pytest.fixture
def service(gateway, settings, today):
    """ProgressionService over the in-memory gateway with a fixed clock."""
    return ProgressionService(gateway, settings=settings, today_fn=lambda: today)


@pytest.fixture
def sample_badges():
    """A small catalog covering each requirement type."""
    return [
        BadgeDefinition(
            id="level-2",
            name="Rising Star",
            requirement_type="level",
            requirement_value=2,
            xp_reward=10,
            icon="⭐",
            category="level",
        ),
        BadgeDefinition(
            id="streak-3",
            name="On Fire",
            requirement_type="streak_days",
            requirement_value=3,
            xp_reward=15,
            icon="🔥",
            category="streak",
        ),
        BadgeDefinition(
            id="streak-7",
            name="Week Warrior",
            requirement_type="streak_days",
            requirement_value=7,
            xp_reward=0,
            icon="📅",
            category="streak",
        ),
        BadgeDefinition(
            id="cards-1",
            name="First Card",
            requirement_type="flashcards_reviewed",
            requirement_value=1,
            xp_reward=5,
            icon="🃏",
            category="flashcards",
        ),
    ]
