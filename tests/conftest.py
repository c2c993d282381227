"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lexideck.srs import Card, Deck, InMemoryCardStore, SM2Scheduler, SQLCardStore  # noqa: E402

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def now():
    """A fixed review time."""
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return SM2Scheduler()


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults."""

    def _make(card_id="привет", **overrides):
        fields = {
            "id": card_id,
            "word": card_id,
            "translation": "hello",
            "source_language": "ru",
            "next_review_date": NOW,
            "added_at": NOW - timedelta(days=30),
        }
        fields.update(overrides)
        return Card(**fields)

    return _make


@pytest.fixture
def memory_store():
    return InMemoryCardStore()


@pytest.fixture
def sql_store(tmp_path):
    store = SQLCardStore(f"sqlite:///{tmp_path / 'deck.db'}")
    yield store
    store.close()


@pytest.fixture
def deck(memory_store, clock):
    return Deck(memory_store, clock=clock)
