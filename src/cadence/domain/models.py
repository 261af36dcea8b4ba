"""
Domain models for reviewable items and their scheduling state.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from cadence.domain.constants import LEITNER_NAME, LEITNER_VERSION, SM2_NAME, SM2_VERSION


class ItemStatus(str, Enum):
    """Position of an item in the review state machine."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    SUSPENDED = "suspended"

    @property
    def priority(self) -> int:
        match self:
            case ItemStatus.NEW:
                return 1
            case ItemStatus.LEARNING:
                return 2
            case ItemStatus.REVIEW:
                return 3
            case ItemStatus.SUSPENDED:
                return 4
        raise ValueError(f"Unknown item status: {self}")


class Response(str, Enum):
    """Button pressed by the learner."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def is_correct(self) -> bool:
        return self in (Response.GOOD, Response.EASY)


@dataclass(frozen=True)
class Sm2Data:
    """
    SM-2 owned fields.

    Attributes:
        version: Version of the SM-2 strategy that last wrote this item.
        last_response: Most recent response processed.
        response_time: When that response was processed.
        migrated_from: Algorithm name the item was migrated from, if any.
        migrated_at: When the migration happened.
    """

    version: str = SM2_VERSION
    last_response: Response | None = None
    response_time: datetime | None = None
    migrated_from: str | None = None
    migrated_at: datetime | None = None

    algorithm_name = SM2_NAME


@dataclass(frozen=True)
class LeitnerData:
    """
    Leitner owned fields.

    Attributes:
        box: Current box, 1-based.
        previous_box: Box before the most recent response.
        success_count: Number of good/easy responses.
        failure_count: Number of again responses.
    """

    version: str = LEITNER_VERSION
    box: int = 1
    previous_box: int | None = None
    success_count: int = 0
    failure_count: int = 0
    last_response: Response | None = None
    response_time: datetime | None = None
    migrated_from: str | None = None
    migrated_at: datetime | None = None

    algorithm_name = LEITNER_NAME

    @property
    def success_rate(self) -> float:
        total = self.success_count + self.failure_count
        return self.success_count / total if total > 0 else 0.0


@dataclass(frozen=True)
class LegacyData:
    """
    Data written by an algorithm this build does not know.

    Kept verbatim so that reading and writing back an item never loses it.
    """

    algorithm_name: str
    version: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


AlgorithmData = Sm2Data | LeitnerData | LegacyData


def algorithm_name_of(data: AlgorithmData | None) -> str | None:
    """Name of the algorithm that owns ``data`` (None when there is no data)."""
    if data is None:
        return None
    return data.algorithm_name


@dataclass(frozen=True)
class ItemUpdate:
    """
    Result of a scheduling computation for one response.

    Attributes:
        status: New status.
        ease_factor: New ease factor, always within the strategy's bounds.
        interval: New interval (minutes while learning, days otherwise).
        repetitions: New repetition count.
        due_date: Next due timestamp.
        graduated_today: True when this response moved the item into review.
        algorithm_data: Updated algorithm-owned fields.
    """

    status: ItemStatus
    ease_factor: float
    interval: int
    repetitions: int
    due_date: datetime
    graduated_today: bool = False
    algorithm_data: AlgorithmData | None = None


@dataclass(frozen=True)
class Item:
    """
    A reviewable unit (a "card") and its review state.

    Items are immutable: a changed item is only ever produced from a
    strategy result through ``apply`` or by a strategy's migration.
    """

    id: str
    status: ItemStatus
    ease_factor: float
    interval: int
    repetitions: int
    due_date: datetime
    last_review: datetime | None = None
    algorithm_data: AlgorithmData | None = None
    created_at: datetime | None = None

    def apply(self, update: ItemUpdate, reviewed_at: datetime) -> "Item":
        """Return the item as it stands after ``update`` was computed at ``reviewed_at``."""
        return replace(
            self,
            status=update.status,
            ease_factor=update.ease_factor,
            interval=update.interval,
            repetitions=update.repetitions,
            due_date=update.due_date,
            last_review=reviewed_at,
            algorithm_data=update.algorithm_data,
        )
