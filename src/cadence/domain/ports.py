"""
Ports (interfaces) for the external persistence collaborator.

These define the contract that infrastructure adapters must implement.
The scheduling core never calls them; only the boundary service does.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from .models import Item
from .stats.models import SessionSummary


@dataclass(frozen=True)
class PersistResult:
    """
    Outcome of a single item write.

    Attributes:
        item_id: The item that was written.
        ok: True when the write was applied.
        conflict: True when the stored item no longer matched the snapshot
            the update was computed from (optimistic concurrency failure).
        message: Human readable detail for failures.
    """

    item_id: str
    ok: bool
    conflict: bool = False
    message: str | None = None


class ItemRepository(ABC):
    """
    Port for loading and storing items.

    Implementations:
        - InMemoryItemRepository: dict-backed store, used by tests.
        - YamlItemRepository: one YAML file per scope, used by the CLI.
    """

    @abstractmethod
    async def load_items_for_scope(self, scope: str) -> list[Item]:
        """
        Fetch every item belonging to ``scope`` (a file, deck or folder id).

        Returns:
            List of items in storage order.
        """
        pass

    @abstractmethod
    async def persist(self, item: Item, snapshot: Item) -> PersistResult:
        """
        Store ``item``, which was computed from ``snapshot``.

        The write must be rejected (``conflict=True``) if the stored item no
        longer equals ``snapshot``. Callers re-fetch and retry; the core never does.
        """
        pass


class ProgressRepository(ABC):
    """Port for session summaries and learner streaks."""

    @abstractmethod
    async def record_session_summary(self, summary: SessionSummary) -> None:
        """Store a finished (or abandoned) session summary."""
        pass

    @abstractmethod
    async def update_learner_streak(self, learner_id: str, day: date) -> int:
        """
        Mark ``day`` as studied for ``learner_id``.

        Returns:
            The learner's streak length after the update.
        """
        pass
