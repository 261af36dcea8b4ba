from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.models import Item, ItemStatus

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_item():
    """Factory for items with sensible defaults, due at NOW."""

    def _make(
        item_id="card-1",
        status=ItemStatus.NEW,
        ease_factor=2.5,
        interval=1,
        repetitions=0,
        due_date=None,
        **kwargs,
    ):
        return Item(
            id=item_id,
            status=status,
            ease_factor=ease_factor,
            interval=interval,
            repetitions=repetitions,
            due_date=due_date or NOW,
            **kwargs,
        )

    return _make


@pytest.fixture
def queue_items(make_item):
    """Mixed-status collection around NOW used by queue and session tests."""
    return [
        make_item("new-1", created_at=NOW - timedelta(days=2)),
        make_item("new-2", created_at=NOW - timedelta(days=1)),
        make_item(
            "learning-1",
            status=ItemStatus.LEARNING,
            interval=10,
            due_date=NOW + timedelta(minutes=10),
        ),
        make_item(
            "learning-2",
            status=ItemStatus.LEARNING,
            interval=1,
            due_date=NOW - timedelta(minutes=5),
        ),
        make_item(
            "review-1",
            status=ItemStatus.REVIEW,
            ease_factor=2.3,
            interval=7,
            repetitions=2,
            due_date=NOW - timedelta(hours=1),
        ),
        make_item(
            "review-2",
            status=ItemStatus.REVIEW,
            ease_factor=2.1,
            interval=15,
            repetitions=3,
            due_date=NOW + timedelta(hours=2),
        ),
        make_item("suspended-1", status=ItemStatus.SUSPENDED, interval=5, repetitions=1),
    ]


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config
    monkeypatch.setenv("HOME", str(home))
    return home
