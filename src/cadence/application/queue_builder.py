"""
Queue builder for daily study sessions.

Builds a bounded daily queue by:
1. Partitioning items by status (suspended items never enter)
2. Keeping only items due within each status' horizon
3. Sorting each bucket by its configured order
4. Capping new and review buckets (learning is never capped)
"""

import logging
import math
import random
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Literal

from cadence.application.utils.time import add_days, add_minutes, end_of_day, ensure_aware, utc_now
from cadence.domain import constants as C
from cadence.domain.models import Item, ItemStatus

logger = logging.getLogger(__name__)

CardOrder = Literal["created", "due", "interval", "random"]


@dataclass(frozen=True)
class QueueConfig:
    """
    Daily queue policy.

    Attributes:
        max_new_cards_per_day: Cap on the new bucket.
        max_review_cards_per_day: Cap on the review bucket.
        learning_ahead_limit: Minutes ahead of now a learning item may be due.
        review_ahead_limit: Days ahead of now a review item may be due.
        new_card_order: Sort order for the new bucket.
        review_card_order: Sort order for the review bucket.
    """

    max_new_cards_per_day: int = C.DEFAULT_MAX_NEW_PER_DAY
    max_review_cards_per_day: int = C.DEFAULT_MAX_REVIEW_PER_DAY
    learning_ahead_limit: int = C.DEFAULT_LEARNING_AHEAD_MINUTES
    review_ahead_limit: int = C.DEFAULT_REVIEW_AHEAD_DAYS
    new_card_order: CardOrder = "created"
    review_card_order: CardOrder = "due"


@dataclass(frozen=True)
class DailyQueue:
    new_cards: list[Item] = field(default_factory=list)
    learning_cards: list[Item] = field(default_factory=list)
    review_cards: list[Item] = field(default_factory=list)

    @property
    def total_cards(self) -> int:
        return len(self.new_cards) + len(self.learning_cards) + len(self.review_cards)

    @property
    def estimated_study_time(self) -> int:
        """Minutes, rounded up."""
        return estimate_study_time(
            len(self.new_cards), len(self.learning_cards), len(self.review_cards)
        )

    def all_items(self) -> list[Item]:
        """Items in study order: learning, then new, then review."""
        return [*self.learning_cards, *self.new_cards, *self.review_cards]

    def next_item(self) -> Item | None:
        for bucket in (self.learning_cards, self.new_cards, self.review_cards):
            if bucket:
                return bucket[0]
        return None


@dataclass(frozen=True)
class CardCounts:
    new: int = 0
    learning: int = 0
    review: int = 0
    suspended: int = 0
    total: int = 0


@dataclass(frozen=True)
class DayWorkload:
    date: date
    new_cards: int
    learning_cards: int
    review_cards: int
    total_cards: int
    estimated_study_time: int


def generate_daily_queue(
    items: Iterable[Item],
    config: QueueConfig | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> DailyQueue:
    """
    Build the bounded study set for ``now``.

    Args:
        items: Every item in scope, any status.
        config: Queue policy; defaults apply when omitted.
        now: Planning instant; the current time when omitted.
        rng: Source for the ``random`` order.

    Returns:
        DailyQueue with new, learning and review buckets.
    """
    cfg = config or QueueConfig()
    moment = ensure_aware(now or utc_now())

    new_cutoff = end_of_day(moment)
    learning_cutoff = add_minutes(moment, cfg.learning_ahead_limit)
    review_cutoff = add_days(moment, cfg.review_ahead_limit)

    new_due: list[Item] = []
    learning_due: list[Item] = []
    review_due: list[Item] = []

    for item in items:
        due = ensure_aware(item.due_date)
        match item.status:
            case ItemStatus.NEW:
                if due <= new_cutoff:
                    new_due.append(item)
            case ItemStatus.LEARNING:
                if due <= learning_cutoff:
                    learning_due.append(item)
            case ItemStatus.REVIEW:
                if due <= review_cutoff:
                    review_due.append(item)
            case ItemStatus.SUSPENDED:
                pass

    return DailyQueue(
        new_cards=_sort_cards(new_due, cfg.new_card_order, rng)[: max(0, cfg.max_new_cards_per_day)],
        learning_cards=_sort_cards(learning_due, "due", rng),
        review_cards=_sort_cards(review_due, cfg.review_card_order, rng)[
            : max(0, cfg.max_review_cards_per_day)
        ],
    )


def optimize_queue(queue: DailyQueue, max_minutes: float) -> DailyQueue:
    """
    Trim ``queue`` to fit ``max_minutes``.

    New cards go first, then review cards. Learning cards are in-flight
    commitments and are never trimmed, so the result may still exceed the
    budget when learning alone does.
    """
    if queue.estimated_study_time <= max_minutes:
        return queue

    budget = max_minutes * 60
    learning = len(queue.learning_cards)
    new_keep = len(queue.new_cards)
    review_keep = len(queue.review_cards)

    def seconds() -> int:
        return (
            new_keep * C.SECONDS_PER_NEW_CARD
            + learning * C.SECONDS_PER_LEARNING_CARD
            + review_keep * C.SECONDS_PER_REVIEW_CARD
        )

    while seconds() > budget and new_keep > 0:
        new_keep -= 1
    while seconds() > budget and review_keep > 0:
        review_keep -= 1

    logger.debug(
        f"Trimmed queue to {new_keep}/{len(queue.new_cards)} new and "
        f"{review_keep}/{len(queue.review_cards)} review cards"
    )
    return replace(
        queue,
        new_cards=queue.new_cards[:new_keep],
        review_cards=queue.review_cards[:review_keep],
    )


def calculate_workload(
    items: Iterable[Item],
    config: QueueConfig | None = None,
    days: int = C.DEFAULT_WORKLOAD_DAYS,
    start: datetime | None = None,
) -> list[DayWorkload]:
    """Project the daily queue for each of the next ``days`` days, starting at ``start``."""
    snapshot = list(items)
    moment = ensure_aware(start or utc_now())
    workload = []

    for offset in range(max(0, days)):
        day = moment + timedelta(days=offset)
        queue = generate_daily_queue(snapshot, config, day)
        workload.append(
            DayWorkload(
                date=day.date(),
                new_cards=len(queue.new_cards),
                learning_cards=len(queue.learning_cards),
                review_cards=len(queue.review_cards),
                total_cards=queue.total_cards,
                estimated_study_time=queue.estimated_study_time,
            )
        )
    return workload


def get_card_counts(items: Iterable[Item]) -> CardCounts:
    counts = {status: 0 for status in ItemStatus}
    for item in items:
        counts[item.status] += 1
    return CardCounts(
        new=counts[ItemStatus.NEW],
        learning=counts[ItemStatus.LEARNING],
        review=counts[ItemStatus.REVIEW],
        suspended=counts[ItemStatus.SUSPENDED],
        total=sum(counts.values()),
    )


def get_cards_due_today(items: Iterable[Item], now: datetime | None = None) -> list[Item]:
    cutoff = end_of_day(ensure_aware(now or utc_now()))
    return [
        item
        for item in items
        if item.status is not ItemStatus.SUSPENDED and ensure_aware(item.due_date) <= cutoff
    ]


def get_overdue_cards(items: Iterable[Item], now: datetime | None = None) -> list[Item]:
    """Items due on or before the end of the previous day."""
    cutoff = end_of_day(ensure_aware(now or utc_now()) - timedelta(days=1))
    return [
        item
        for item in items
        if item.status is not ItemStatus.SUSPENDED and ensure_aware(item.due_date) <= cutoff
    ]


def estimate_study_time(new: int, learning: int, review: int) -> int:
    total_seconds = (
        new * C.SECONDS_PER_NEW_CARD
        + learning * C.SECONDS_PER_LEARNING_CARD
        + review * C.SECONDS_PER_REVIEW_CARD
    )
    return math.ceil(total_seconds / 60)


def _sort_cards(items: list[Item], order: CardOrder, rng: random.Random | None) -> list[Item]:
    match order:
        case "created":
            # items without a creation time sort by due date after dated ones
            return sorted(
                items,
                key=lambda item: (
                    item.created_at is None,
                    ensure_aware(item.created_at or item.due_date),
                ),
            )
        case "due":
            return sorted(items, key=lambda item: ensure_aware(item.due_date))
        case "interval":
            return sorted(items, key=lambda item: item.interval)
        case "random":
            shuffled = list(items)
            (rng or random.Random()).shuffle(shuffled)
            return shuffled
    raise ValueError(f"Unknown card order: {order!r}")
