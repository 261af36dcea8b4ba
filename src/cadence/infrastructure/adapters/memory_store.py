"""
In-memory repositories.

Used by tests. Item writes use optimistic concurrency:
a write computed from a stale snapshot is rejected.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from cadence.application.stats import calculate_study_streak
from cadence.domain.models import Item
from cadence.domain.ports import ItemRepository, PersistResult, ProgressRepository
from cadence.domain.stats.models import SessionSummary

logger = logging.getLogger(__name__)


class InMemoryItemRepository(ItemRepository):
    """Items grouped by scope, keyed by id."""

    def __init__(self, scopes: dict[str, Iterable[Item]] | None = None):
        self._scopes: dict[str, dict[str, Item]] = {}
        self._scope_of: dict[str, str] = {}
        for scope, items in (scopes or {}).items():
            self.add_items(scope, items)

    def add_items(self, scope: str, items: Iterable[Item]) -> None:
        bucket = self._scopes.setdefault(scope, {})
        for item in items:
            bucket[item.id] = item
            self._scope_of[item.id] = scope

    def get(self, item_id: str) -> Item | None:
        scope = self._scope_of.get(item_id)
        if scope is None:
            return None
        return self._scopes[scope].get(item_id)

    async def load_items_for_scope(self, scope: str) -> list[Item]:
        return list(self._scopes.get(scope, {}).values())

    async def persist(self, item: Item, snapshot: Item) -> PersistResult:
        scope = self._scope_of.get(item.id)
        if scope is None:
            return PersistResult(item_id=item.id, ok=False, message="Item not found")

        stored = self._scopes[scope][item.id]
        if stored != snapshot:
            logger.warning(f"Stale write rejected for item {item.id}")
            return PersistResult(
                item_id=item.id,
                ok=False,
                conflict=True,
                message="Stored item changed since it was loaded",
            )

        self._scopes[scope][item.id] = item
        return PersistResult(item_id=item.id, ok=True)


class InMemoryProgressRepository(ProgressRepository):
    def __init__(self):
        self.summaries: list[SessionSummary] = []
        self._study_days: dict[str, set[date]] = defaultdict(set)

    async def record_session_summary(self, summary: SessionSummary) -> None:
        self.summaries.append(summary)

    async def update_learner_streak(self, learner_id: str, day: date) -> int:
        self._study_days[learner_id].add(day)
        return calculate_study_streak(self._study_days[learner_id], day)
