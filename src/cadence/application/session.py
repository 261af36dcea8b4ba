"""
Study session runner.

Owns one learner's in-progress session: the session queue, the cursor,
the response history used for undo and the rolling statistics.

State machine: active <-> paused, active -> completed. A session over no
due items is created already exhausted; that is not an error.
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ulid import ULID

from cadence.application.strategies import SchedulingStrategy
from cadence.application.strategies.base import coerce_response
from cadence.application.utils.time import add_minutes, ensure_aware, utc_now
from cadence.domain import constants as C
from cadence.domain.errors import SessionStateError
from cadence.domain.models import Item, ItemStatus, ItemUpdate, Response
from cadence.domain.stats.models import SessionStats, SessionSummary

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{ULID()}"


class SessionState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionConfig:
    """
    Attributes:
        max_new_cards: Cap on new items selected at start.
        max_review_cards: Cap on review items selected at start.
        learning_ahead_limit: Minutes ahead a learning item may be due and
            still be selected (and re-inserted after a response).
    """

    max_new_cards: int = C.DEFAULT_MAX_NEW_PER_DAY
    max_review_cards: int = C.DEFAULT_MAX_REVIEW_PER_DAY
    learning_ahead_limit: int = C.DEFAULT_LEARNING_AHEAD_MINUTES


@dataclass(frozen=True)
class ReviewRecord:
    """
    One processed response, with everything needed to undo it.

    Attributes:
        position: Cursor position the response was given at.
        before: The item as it was shown.
        after: The item produced by the strategy.
        reinserted_at: Queue index of the re-inserted copy, if any.
    """

    position: int
    before: Item
    after: Item
    response: Response
    response_time_ms: float
    reviewed_at: datetime
    update: ItemUpdate
    reinserted_at: int | None = None

    @property
    def item_id(self) -> str:
        return self.before.id

    @property
    def original_status(self) -> ItemStatus:
        return self.before.status


@dataclass(frozen=True)
class ReviewOutcome:
    update: ItemUpdate
    item: Item
    next_item: Item | None


class SessionQueue:
    """Index-addressed item list with a cursor; insertions land after the cursor."""

    def __init__(self, items: Iterable[Item] = ()):
        self._items: list[Item] = list(items)
        self.cursor = 0

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Item:
        return self._items[index]

    def current(self) -> Item | None:
        if self.cursor >= len(self._items):
            return None
        return self._items[self.cursor]

    def advance(self) -> None:
        self.cursor = min(self.cursor + 1, len(self._items))

    def remaining(self) -> list[Item]:
        return self._items[self.cursor :]

    def remaining_after_cursor(self) -> int:
        return max(0, len(self._items) - self.cursor - 1)

    def insert_after_cursor(self, item: Item, gap: int = 0) -> int:
        index = min(self.cursor + 1 + max(0, gap), len(self._items))
        self._items.insert(index, item)
        return index

    def remove_at(self, index: int) -> Item:
        if index <= self.cursor:
            raise SessionStateError(f"Cannot remove item at {index}, cursor is at {self.cursor}")
        return self._items.pop(index)


class StudySession:
    """
    One learner's study session over a single scope.

    Args:
        strategy: Scheduling strategy used for every response.
        learner_id: Owner of the session.
        scope_id: File, deck or folder the items came from.
        config: Selection and re-insertion policy.
        clock: Time source, replaceable in tests.
    """

    def __init__(
        self,
        strategy: SchedulingStrategy,
        learner_id: str = "",
        scope_id: str = "",
        config: SessionConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        session_id: str | None = None,
    ):
        self.strategy = strategy
        self.learner_id = learner_id
        self.scope_id = scope_id
        self.config = config or SessionConfig()
        self.session_id = session_id or generate_session_id()
        self._clock = clock
        self._queue = SessionQueue()
        self._history: list[ReviewRecord] = []
        self._state = SessionState.ACTIVE
        self._started_at = self._now()
        self._ended_at: datetime | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> list[ReviewRecord]:
        return list(self._history)

    def initialize_session(self, items: Iterable[Item], now: datetime | None = None) -> None:
        """
        Select due items and order them by priority.

        New and review items must be due by ``now`` and are capped; learning
        items may be due up to the learning ahead window and are not capped.
        """
        moment = ensure_aware(now or self._now())
        learning_cutoff = add_minutes(moment, self.config.learning_ahead_limit)

        new_items: list[Item] = []
        learning_items: list[Item] = []
        review_items: list[Item] = []
        for item in items:
            due = ensure_aware(item.due_date)
            match item.status:
                case ItemStatus.NEW if due <= moment:
                    new_items.append(item)
                case ItemStatus.LEARNING if due <= learning_cutoff:
                    learning_items.append(item)
                case ItemStatus.REVIEW if due <= moment:
                    review_items.append(item)
                case _:
                    pass

        selected = (
            new_items[: max(0, self.config.max_new_cards)]
            + learning_items
            + review_items[: max(0, self.config.max_review_cards)]
        )
        self._queue = SessionQueue(self.strategy.sort_cards_by_priority(selected))
        self._history = []
        self._started_at = moment
        self._ended_at = None
        self._state = SessionState.ACTIVE
        logger.info(f"Session {self.session_id} started with {len(self._queue)} items")

    def get_current_card(self) -> Item | None:
        if self._state is SessionState.COMPLETED:
            return None
        return self._queue.current()

    def is_completed(self) -> bool:
        return self._state is SessionState.COMPLETED or self._queue.current() is None

    def process_response(
        self,
        response: Response | str,
        response_time_ms: float = 0,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Schedule the current item and move to the next one.

        Raises:
            SessionStateError: if the session is paused, ended or exhausted.
        """
        self._require_active()
        current = self._queue.current()
        if current is None:
            raise SessionStateError("No item available for response")

        response = coerce_response(response)
        moment = ensure_aware(now or self._now())
        update = self.strategy.calculate_next_review(current, response, moment)
        updated = current.apply(update, moment)

        reinserted_at = None
        if self._should_reinsert(current, update, moment):
            gap = min(
                C.MAX_REINSERT_GAP,
                int(self._queue.remaining_after_cursor() * C.REINSERT_GAP_RATIO),
            )
            reinserted_at = self._queue.insert_after_cursor(updated, gap)
            logger.debug(f"Re-inserted {current.id} at {reinserted_at}")

        self._history.append(
            ReviewRecord(
                position=self._queue.cursor,
                before=current,
                after=updated,
                response=response,
                response_time_ms=response_time_ms,
                reviewed_at=moment,
                update=update,
                reinserted_at=reinserted_at,
            )
        )
        self._queue.advance()
        return ReviewOutcome(update=update, item=updated, next_item=self._queue.current())

    def skip_current_card(self) -> Item | None:
        """Move past the current item without scheduling it."""
        self._require_active()
        if self._queue.current() is None:
            return None
        self._queue.advance()
        return self._queue.current()

    def undo_last_review(self) -> bool:
        """
        Revert the most recent response.

        The cursor returns to where that response was given (items skipped
        after it are shown again) and any re-inserted copy is removed.
        Returns False when there is nothing to undo or the session is not
        active.
        """
        if self._state is not SessionState.ACTIVE:
            return False
        if not self._history or self._queue.cursor == 0:
            return False

        record = self._history.pop()
        self._queue.cursor = record.position
        if record.reinserted_at is not None:
            self._queue.remove_at(record.reinserted_at)
        logger.debug(f"Undid {record.response.value} on {record.item_id}")
        return True

    def pause(self) -> None:
        self._require_active()
        self._state = SessionState.PAUSED

    def resume(self) -> None:
        if self._state is not SessionState.PAUSED:
            raise SessionStateError(f"Cannot resume a {self._state.value} session")
        self._state = SessionState.ACTIVE

    def end_session(self, now: datetime | None = None) -> SessionSummary:
        """Finalize elapsed time and produce the summary. Idempotent."""
        if self._state is not SessionState.COMPLETED:
            self._ended_at = ensure_aware(now or self._now())
            self._state = SessionState.COMPLETED
            logger.info(
                f"Session {self.session_id} ended after {len(self._history)} responses"
            )
        return self.snapshot()

    def snapshot(self, now: datetime | None = None) -> SessionSummary:
        """Summary of the session so far; does not end it."""
        stats = self.get_stats(now)
        return SessionSummary(
            session_id=self.session_id,
            learner_id=self.learner_id,
            scope_id=self.scope_id,
            cards_studied=stats.completed_cards,
            correct_answers=stats.correct_answers,
            study_duration=stats.study_duration,
            session_date=self._started_at,
            stats=stats,
        )

    def get_progress(self) -> dict[str, int]:
        current = len(self._history)
        total = len(self._queue)
        percentage = round(current / total * 100) if total > 0 else 0
        return {"current": current, "total": total, "percentage": percentage}

    def get_stats(self, now: datetime | None = None) -> SessionStats:
        by_status = Counter(record.original_status for record in self._history)
        completed = len(self._history)
        correct = sum(1 for record in self._history if record.response.is_correct)
        average = (
            sum(record.response_time_ms for record in self._history) / completed
            if completed
            else 0.0
        )
        end = self._ended_at or ensure_aware(now or self._now())
        return SessionStats(
            total_cards=len(self._queue),
            completed_cards=completed,
            new_cards_learned=by_status[ItemStatus.NEW],
            learning_cards_completed=by_status[ItemStatus.LEARNING],
            review_cards_completed=by_status[ItemStatus.REVIEW],
            correct_answers=correct,
            average_response_time=average,
            accuracy_rate=correct / completed * 100 if completed else 0.0,
            started_at=self._started_at,
            ended_at=self._ended_at,
            study_duration=max(0, int((end - self._started_at).total_seconds())),
        )

    def get_remaining_cards_by_status(self) -> dict[str, int]:
        counts = Counter(item.status for item in self._queue.remaining())
        return {
            ItemStatus.NEW.value: counts[ItemStatus.NEW],
            ItemStatus.LEARNING.value: counts[ItemStatus.LEARNING],
            ItemStatus.REVIEW.value: counts[ItemStatus.REVIEW],
        }

    def updated_items(self) -> dict[str, Item]:
        """Latest computed state per item id."""
        latest: dict[str, Item] = {}
        for record in self._history:
            latest[record.item_id] = record.after
        return latest

    def original_items(self) -> dict[str, Item]:
        """State of each reviewed item before the session touched it."""
        originals: dict[str, Item] = {}
        for record in self._history:
            originals.setdefault(record.item_id, record.before)
        return originals

    def _should_reinsert(self, current: Item, update: ItemUpdate, moment: datetime) -> bool:
        if update.status is not ItemStatus.LEARNING:
            return False
        if current.status is ItemStatus.REVIEW:
            return True
        return ensure_aware(update.due_date) <= add_minutes(moment, self.config.learning_ahead_limit)

    def _require_active(self) -> None:
        if self._state is not SessionState.ACTIVE:
            raise SessionStateError(f"Session {self.session_id} is {self._state.value}")

    def _now(self) -> datetime:
        return ensure_aware(self._clock())
