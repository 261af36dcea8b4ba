from dataclasses import replace
from datetime import date

import pytest

from cadence.domain.models import ItemStatus
from cadence.infrastructure.adapters import InMemoryItemRepository, InMemoryProgressRepository


@pytest.mark.asyncio
async def test_load_by_scope(make_item):
    repo = InMemoryItemRepository({"a": [make_item("1"), make_item("2")], "b": [make_item("3")]})

    assert [i.id for i in await repo.load_items_for_scope("a")] == ["1", "2"]
    assert await repo.load_items_for_scope("missing") == []


@pytest.mark.asyncio
async def test_persist_against_current_snapshot(make_item):
    original = make_item("1")
    repo = InMemoryItemRepository({"a": [original]})
    updated = replace(original, status=ItemStatus.LEARNING)

    result = await repo.persist(updated, original)

    assert result.ok
    assert repo.get("1") == updated


@pytest.mark.asyncio
async def test_stale_snapshot_is_a_conflict(make_item):
    original = make_item("1")
    repo = InMemoryItemRepository({"a": [original]})
    await repo.persist(replace(original, interval=3), original)

    result = await repo.persist(replace(original, interval=9), original)

    assert not result.ok
    assert result.conflict
    assert repo.get("1").interval == 3


@pytest.mark.asyncio
async def test_unknown_item(make_item):
    repo = InMemoryItemRepository()
    result = await repo.persist(make_item("ghost"), make_item("ghost"))

    assert not result.ok
    assert not result.conflict
    assert result.message == "Item not found"
    assert repo.get("ghost") is None


@pytest.mark.asyncio
async def test_progress_repository():
    repo = InMemoryProgressRepository()

    assert await repo.update_learner_streak("l", date(2024, 1, 13)) == 1
    assert await repo.update_learner_streak("l", date(2024, 1, 14)) == 2
    assert await repo.update_learner_streak("l", date(2024, 1, 14)) == 2
    assert await repo.update_learner_streak("other", date(2024, 1, 14)) == 1
    assert await repo.update_learner_streak("l", date(2024, 1, 16)) == 1
