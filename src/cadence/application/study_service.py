"""
Study Service: application layer orchestrator.

The only place that talks to the persistence ports. Everything it calls in
the core is synchronous and pure; loading and writing happen here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from cadence.application.config import EngineConfig
from cadence.application.migration import AlgorithmSettings, MigrationResult, change_algorithm
from cadence.application.queue_builder import (
    DailyQueue,
    DayWorkload,
    calculate_workload,
    generate_daily_queue,
    optimize_queue,
)
from cadence.application.registry import AlgorithmRegistry, build_default_registry
from cadence.application.session import StudySession
from cadence.application.utils.time import ensure_aware, utc_now
from cadence.domain.models import Item
from cadence.domain.ports import ItemRepository, PersistResult, ProgressRepository
from cadence.domain.stats.models import SessionSummary

logger = logging.getLogger(__name__)


@dataclass
class CompletionReport:
    """
    Result of writing a finished session back.

    Attributes:
        summary: The session summary that was recorded.
        persisted: Item ids written successfully.
        conflicts: Item ids whose stored state changed during the session;
            the caller must re-fetch and retry them.
        streak: Learner streak after this session.
    """

    summary: SessionSummary
    persisted: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    failures: list[PersistResult] = field(default_factory=list)
    streak: int = 0


class StudyService:
    """
    Application service for running sessions over stored items.

    Follows Dependency Inversion: depends on the repository ports,
    not concrete adapter implementations.
    """

    def __init__(
        self,
        items: ItemRepository,
        progress: ProgressRepository,
        registry: AlgorithmRegistry | None = None,
        config: EngineConfig | None = None,
    ):
        """
        Args:
            items: Port for loading and storing items.
            progress: Port for session summaries and streaks.
            registry: Algorithm registry; a fresh default registry if omitted.
            config: Engine configuration; defaults if omitted.
        """
        self._items = items
        self._progress = progress
        self._registry = registry or build_default_registry()
        self._config = config or EngineConfig()

    @property
    def registry(self) -> AlgorithmRegistry:
        return self._registry

    async def start_session(
        self,
        scope: str,
        learner_id: str,
        settings: AlgorithmSettings | None = None,
        now: datetime | None = None,
    ) -> StudySession:
        """
        Load ``scope`` and start a session over its due items.

        Raises:
            UnknownAlgorithmError: if ``settings`` names an unregistered algorithm.
        """
        settings = settings or self._config.algorithm_settings()
        strategy = self._registry.create_algorithm(settings.name, settings.config)
        items = await self._items.load_items_for_scope(scope)

        session = StudySession(
            strategy,
            learner_id=learner_id,
            scope_id=scope,
            config=self._config.session_config(),
        )
        session.initialize_session(items, now)
        return session

    async def complete_session(
        self, session: StudySession, now: datetime | None = None
    ) -> CompletionReport:
        """
        End ``session`` and write its results.

        Every updated item is persisted against the snapshot it was computed
        from. Conflicts are collected, never retried.
        """
        summary = session.end_session(now)
        report = CompletionReport(summary=summary)

        originals = session.original_items()
        for item_id, updated in session.updated_items().items():
            result = await self._items.persist(updated, originals[item_id])
            if result.ok:
                report.persisted.append(item_id)
            elif result.conflict:
                logger.warning(f"Conflict persisting item {item_id}: {result.message}")
                report.conflicts.append(item_id)
            else:
                logger.error(f"Failed to persist item {item_id}: {result.message}")
                report.failures.append(result)

        await self._progress.record_session_summary(summary)
        if summary.cards_studied > 0:
            report.streak = await self._progress.update_learner_streak(
                session.learner_id, summary.session_date.date()
            )
        return report

    async def change_algorithm(
        self,
        scope: str,
        from_settings: AlgorithmSettings,
        to_settings: AlgorithmSettings,
        now: datetime | None = None,
    ) -> MigrationResult:
        """Migrate every item in ``scope`` and write the migrated items back."""
        items = await self._items.load_items_for_scope(scope)
        by_id = {item.id: item for item in items}
        result = change_algorithm(items, from_settings, to_settings, self._registry, now)

        for migrated in list(result.migrated):
            persisted = await self._items.persist(migrated, by_id[migrated.id])
            if not persisted.ok:
                result.migrated.remove(migrated)
                result.errors.append(f"{migrated.id}: {persisted.message or 'not persisted'}")
        return result

    async def daily_queue(self, scope: str, now: datetime | None = None) -> DailyQueue:
        items = await self._items.load_items_for_scope(scope)
        queue = generate_daily_queue(items, self._config.queue_config(), now)
        if self._config.max_session_minutes is not None:
            queue = optimize_queue(queue, self._config.max_session_minutes)
        return queue

    async def workload(
        self, scope: str, days: int = 7, now: datetime | None = None
    ) -> list[DayWorkload]:
        items = await self._items.load_items_for_scope(scope)
        return calculate_workload(
            items, self._config.queue_config(), days, ensure_aware(now or utc_now())
        )

    async def load(self, scope: str) -> list[Item]:
        return await self._items.load_items_for_scope(scope)
