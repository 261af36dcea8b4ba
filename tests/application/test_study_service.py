from dataclasses import replace
from datetime import date

import pytest

import cadence.application.config as config_module
from cadence.application.config import EngineConfig
from cadence.application.migration import AlgorithmSettings
from cadence.application.study_service import StudyService
from cadence.domain.errors import UnknownAlgorithmError
from cadence.domain.models import ItemStatus, LeitnerData, Response
from cadence.infrastructure.adapters import InMemoryItemRepository, InMemoryProgressRepository


@pytest.fixture
def engine_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "missing.toml")
    return EngineConfig(data_dir=tmp_path)


@pytest.fixture
def repos(queue_items):
    return InMemoryItemRepository({"deck": queue_items}), InMemoryProgressRepository()


@pytest.fixture
def service(repos, engine_config):
    items, progress = repos
    return StudyService(items, progress, config=engine_config)


@pytest.mark.asyncio
async def test_session_results_are_persisted(service, repos, now):
    items, progress = repos
    session = await service.start_session("deck", "learner-1", now=now)

    first = session.get_current_card()
    session.process_response(Response.EASY, 900, now)
    report = await service.complete_session(session, now)

    assert report.persisted == [first.id]
    assert report.conflicts == []
    assert report.failures == []
    assert report.streak == 1
    assert items.get(first.id).status is ItemStatus.REVIEW
    assert items.get(first.id).last_review == now
    assert progress.summaries == [report.summary]
    assert report.summary.cards_studied == 1


@pytest.mark.asyncio
async def test_concurrent_change_is_reported_as_conflict(service, repos, now):
    items, _ = repos
    session = await service.start_session("deck", "learner-1", now=now)
    current = session.get_current_card()
    session.process_response(Response.GOOD, 500, now)

    # another writer suspends the item meanwhile
    items.add_items("deck", [replace(current, status=ItemStatus.SUSPENDED)])
    report = await service.complete_session(session, now)

    assert report.conflicts == [current.id]
    assert report.persisted == []
    assert items.get(current.id).status is ItemStatus.SUSPENDED


@pytest.mark.asyncio
async def test_session_without_responses_keeps_streak(service, repos, now):
    _, progress = repos
    session = await service.start_session("deck", "learner-1", now=now)
    report = await service.complete_session(session, now)

    assert report.persisted == []
    assert report.streak == 0
    assert len(progress.summaries) == 1


@pytest.mark.asyncio
async def test_streak_grows_across_days(repos, engine_config, now):
    items, progress = repos
    await progress.update_learner_streak("learner-1", date(2024, 1, 14))
    service = StudyService(items, progress, config=engine_config)

    session = await service.start_session("deck", "learner-1", now=now)
    session.process_response(Response.GOOD, 500, now)
    report = await service.complete_session(session, now)

    assert report.streak == 2


@pytest.mark.asyncio
async def test_unknown_algorithm_raises(service, now):
    with pytest.raises(UnknownAlgorithmError):
        await service.start_session("deck", "learner-1", AlgorithmSettings(name="fsrs"), now)


@pytest.mark.asyncio
async def test_session_uses_requested_algorithm(service, now):
    session = await service.start_session("deck", "learner-1", AlgorithmSettings(name="leitner"), now)
    outcome = session.process_response(Response.GOOD, 500, now)

    assert isinstance(outcome.update.algorithm_data, LeitnerData)


@pytest.mark.asyncio
async def test_change_algorithm_persists_items(service, repos, now):
    items, _ = repos
    result = await service.change_algorithm(
        "deck", AlgorithmSettings(name="anki-sm2"), AlgorithmSettings(name="leitner"), now
    )

    assert result.migrated_count == 7
    assert result.errors == []
    stored = await items.load_items_for_scope("deck")
    assert all(isinstance(item.algorithm_data, LeitnerData) for item in stored)


@pytest.mark.asyncio
async def test_daily_queue_respects_time_budget(repos, engine_config, now):
    items, progress = repos
    config = engine_config.model_copy(update={"max_session_minutes": 2})
    service = StudyService(items, progress, config=config)

    queue = await service.daily_queue("deck", now)

    assert queue.estimated_study_time <= 2
    assert len(queue.learning_cards) == 2


@pytest.mark.asyncio
async def test_workload_and_load(service, now):
    workload = await service.workload("deck", days=3, now=now)
    loaded = await service.load("deck")

    assert len(workload) == 3
    assert workload[0].total_cards == 6
    assert len(loaded) == 7
    assert await service.load("missing") == []
