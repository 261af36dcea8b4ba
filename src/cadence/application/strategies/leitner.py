"""
Leitner box system.

Each item sits in a numbered box with a fixed review interval. Correct
answers move it up, mistakes move it down; status is derived from the box.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator

from cadence.application.strategies.base import SchedulingStrategy, coerce_response
from cadence.application.utils.time import add_days, ensure_aware, utc_now
from cadence.domain import constants as C
from cadence.domain.errors import InvalidItemDataError
from cadence.domain.models import (
    Item,
    ItemStatus,
    ItemUpdate,
    LeitnerData,
    LegacyData,
    Response,
    Sm2Data,
)

logger = logging.getLogger(__name__)


class MasteryLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    MASTERED = "mastered"


class LeitnerConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    box_count: PositiveInt = C.LEITNER_BOX_COUNT
    box_intervals: list[PositiveInt] = Field(default_factory=lambda: list(C.LEITNER_BOX_INTERVALS))
    promote_on_success: bool = True
    demote_on_failure: bool = True
    graduated_box: PositiveInt = C.LEITNER_GRADUATED_BOX
    ease_factor: float = Field(default=C.DEFAULT_EASE_FACTOR, gt=0)

    @model_validator(mode="after")
    def check_boxes(self) -> "LeitnerConfig":
        if len(self.box_intervals) != self.box_count:
            raise ValueError("Box intervals length must match box count")
        if self.graduated_box > self.box_count:
            raise ValueError("graduated_box must not exceed box_count")
        return self


class LeitnerStrategy(SchedulingStrategy):
    """
    Simple but effective spaced repetition using boxes.

    Leitner does not evolve an ease factor; it reports the configured
    constant so items stay comparable with SM-2 items.
    """

    name = C.LEITNER_NAME
    version = C.LEITNER_VERSION
    config_model = LeitnerConfig

    @property
    def settings(self) -> LeitnerConfig:
        return self._settings

    def calculate_next_review(
        self,
        item: Item,
        response: Response | str,
        now: datetime | None = None,
    ) -> ItemUpdate:
        self.ensure_valid(item)
        response = coerce_response(response)
        moment = ensure_aware(now or utc_now())
        cfg = self.settings

        current_box = self.get_current_box(item)
        next_box = self._next_box(current_box, response)
        interval = cfg.box_intervals[next_box - 1]

        previous = item.algorithm_data if isinstance(item.algorithm_data, LeitnerData) else None
        success_count = previous.success_count if previous else 0
        failure_count = previous.failure_count if previous else 0
        if response.is_correct:
            success_count += 1
        elif response is Response.AGAIN:
            failure_count += 1

        return ItemUpdate(
            status=self._status_for_box(next_box),
            ease_factor=cfg.ease_factor,
            interval=interval,
            repetitions=item.repetitions + 1,
            due_date=add_days(moment, interval),
            graduated_today=current_box < cfg.graduated_box <= next_box,
            algorithm_data=LeitnerData(
                version=self.version,
                box=next_box,
                previous_box=current_box,
                success_count=success_count,
                failure_count=failure_count,
                last_response=response,
                response_time=moment,
                migrated_from=previous.migrated_from if previous else None,
                migrated_at=previous.migrated_at if previous else None,
            ),
        )

    def initialize_new_card(self, item_id: str, now: datetime | None = None) -> Item:
        if not item_id:
            raise InvalidItemDataError("Item id is required")
        moment = ensure_aware(now or utc_now())
        return Item(
            id=item_id,
            status=ItemStatus.NEW,
            ease_factor=self.settings.ease_factor,
            interval=self.settings.box_intervals[0],
            repetitions=0,
            due_date=moment,
            last_review=None,
            algorithm_data=LeitnerData(version=self.version, box=1),
            created_at=moment,
        )

    def migrate_card(
        self,
        item: Item,
        from_algorithm: str,
        now: datetime | None = None,
    ) -> Item:
        self.ensure_valid(item)
        moment = ensure_aware(now or utc_now())

        match item.algorithm_data:
            case LeitnerData(box=box):
                target_box = box
            case Sm2Data():
                target_box = self._box_from_sm2(item)
            case None if from_algorithm == C.SM2_NAME:
                target_box = self._box_from_sm2(item)
            case LegacyData() | None:
                target_box = self._box_from_interval(item.interval)

        target_box = max(1, min(target_box, self.settings.box_count))
        logger.debug(f"Migrated {item.id} from {from_algorithm} to {self.name} box {target_box}")
        return replace(
            item,
            ease_factor=self.settings.ease_factor,
            interval=self.settings.box_intervals[target_box - 1],
            repetitions=max(0, item.repetitions),
            algorithm_data=LeitnerData(
                version=self.version,
                box=target_box,
                migrated_from=from_algorithm,
                migrated_at=moment,
            ),
        )

    # ------------------------------------------------------------------
    # Leitner specific views
    # ------------------------------------------------------------------

    def get_current_box(self, item: Item) -> int:
        """Box recorded on the item, else inferred from its interval."""
        data = item.algorithm_data
        if isinstance(data, LeitnerData) and 1 <= data.box <= self.settings.box_count:
            return data.box

        for index, box_interval in enumerate(self.settings.box_intervals):
            if item.interval <= box_interval:
                return index + 1
        return self.settings.box_count

    def sort_cards_by_priority(self, items: Iterable[Item]) -> list[Item]:
        """Lower boxes first, then earlier due dates; suspended items last."""
        return sorted(
            items,
            key=lambda item: (
                item.status is ItemStatus.SUSPENDED,
                self.get_current_box(item),
                ensure_aware(item.due_date),
            ),
        )

    def get_box_distribution(self, items: Iterable[Item]) -> dict[int, int]:
        distribution = {box: 0 for box in range(1, self.settings.box_count + 1)}
        for item in items:
            if item.status is ItemStatus.SUSPENDED:
                continue
            distribution[self.get_current_box(item)] += 1
        return distribution

    def get_recommended_study_order(
        self, items: Iterable[Item], now: datetime | None = None
    ) -> list[Item]:
        return self.sort_cards_by_priority(self.get_cards_for_review(items, now))

    def get_mastery_level(self, item: Item) -> MasteryLevel:
        box = self.get_current_box(item)
        data = item.algorithm_data
        success_rate = data.success_rate if isinstance(data, LeitnerData) else 0.0

        if box == 1 or success_rate < C.MASTERY_BEGINNER_RATE:
            return MasteryLevel.BEGINNER
        if box <= 2 or success_rate < C.MASTERY_INTERMEDIATE_RATE:
            return MasteryLevel.INTERMEDIATE
        if box <= 3 or success_rate < C.MASTERY_ADVANCED_RATE:
            return MasteryLevel.ADVANCED
        return MasteryLevel.MASTERED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_box(self, current_box: int, response: Response) -> int:
        cfg = self.settings
        match response:
            case Response.EASY if cfg.promote_on_success:
                return min(current_box + 2, cfg.box_count)
            case Response.GOOD if cfg.promote_on_success:
                return min(current_box + 1, cfg.box_count)
            case Response.AGAIN if cfg.demote_on_failure:
                return 1
            case Response.HARD:
                return max(1, current_box - 1)
            case Response.AGAIN | Response.GOOD | Response.EASY:
                return current_box
        raise ValueError(f"Unknown response: {response!r}")

    def _status_for_box(self, box: int) -> ItemStatus:
        if box == 1:
            return ItemStatus.NEW
        if box < self.settings.graduated_box:
            return ItemStatus.LEARNING
        return ItemStatus.REVIEW

    def _box_from_sm2(self, item: Item) -> int:
        reps = item.repetitions
        if reps == 0:
            box = 1
        elif reps <= 2:
            box = 2
        elif reps <= 5:
            box = 3
        elif reps <= 10:
            box = 4
        else:
            box = 5

        # learning intervals are minutes, not days
        interval = item.interval if item.status is ItemStatus.REVIEW else 0
        if interval >= 30:
            box = max(box, 5)
        elif interval >= 14:
            box = max(box, 4)
        elif interval >= 7:
            box = max(box, 3)
        elif interval >= 3:
            box = max(box, 2)
        return box

    def _box_from_interval(self, interval: int) -> int:
        for index in range(len(self.settings.box_intervals) - 1, -1, -1):
            if interval >= self.settings.box_intervals[index]:
                return index + 1
        return 1
