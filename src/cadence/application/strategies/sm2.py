"""
SM-2 strategy with Anki-style learning phases.

State machine:
1. new      -> learning (first initial step) or review on "easy"
2. learning -> walks the initial (or relearning) step list, graduates to review
3. review   -> grows the interval by the ease factor; "again" lapses to learning
4. suspended stays untouched
"""

import logging
from dataclasses import replace
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator

from cadence.application.strategies.base import SchedulingStrategy, coerce_response
from cadence.application.utils.time import add_days, add_minutes, ensure_aware, round_half_up, utc_now
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


class LearningSteps(BaseModel):
    """Step lists are in minutes, graduation intervals in days."""

    model_config = ConfigDict(extra="ignore")

    initial: list[PositiveInt] = Field(default_factory=lambda: list(C.SM2_INITIAL_STEPS), min_length=1)
    relearning: list[PositiveInt] = Field(
        default_factory=lambda: list(C.SM2_RELEARNING_STEPS), min_length=1
    )
    graduating_interval: PositiveInt = C.SM2_GRADUATING_INTERVAL
    easy_interval: PositiveInt = C.SM2_EASY_INTERVAL


class Sm2Config(BaseModel):
    model_config = ConfigDict(extra="ignore")

    learning_steps: LearningSteps = Field(default_factory=LearningSteps)
    min_ease_factor: float = Field(default=C.SM2_MIN_EASE, gt=0)
    max_ease_factor: float = Field(default=C.SM2_MAX_EASE, gt=0)
    starting_ease: float = Field(default=C.DEFAULT_EASE_FACTOR, gt=0)
    ease_bonus: float = Field(default=C.SM2_EASE_BONUS, ge=0)
    hard_ease_penalty: float = Field(default=C.SM2_HARD_EASE_PENALTY, ge=0)
    lapse_ease_penalty: float = Field(default=C.SM2_LAPSE_EASE_PENALTY, ge=0)
    hard_multiplier: float = Field(default=C.SM2_HARD_MULTIPLIER, gt=0)
    easy_multiplier: float = Field(default=C.SM2_EASY_MULTIPLIER, gt=0)
    new_interval_multiplier: float = Field(default=C.SM2_NEW_INTERVAL_MULTIPLIER, gt=0)

    @model_validator(mode="after")
    def check_ease_bounds(self) -> "Sm2Config":
        if self.min_ease_factor > self.max_ease_factor:
            raise ValueError("min_ease_factor must not exceed max_ease_factor")
        return self


class Sm2Strategy(SchedulingStrategy):
    """
    The SM-2 formula (interval x ease) preceded by minute-scale learning steps.

    All numeric constants come from ``Sm2Config``.
    """

    name = C.SM2_NAME
    version = C.SM2_VERSION
    config_model = Sm2Config

    @property
    def settings(self) -> Sm2Config:
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

        previous = item.algorithm_data if isinstance(item.algorithm_data, Sm2Data) else None
        data = Sm2Data(
            version=self.version,
            last_response=response,
            response_time=moment,
            migrated_from=previous.migrated_from if previous else None,
            migrated_at=previous.migrated_at if previous else None,
        )

        match item.status:
            case ItemStatus.NEW:
                return self._handle_new(item, response, moment, data)
            case ItemStatus.LEARNING:
                return self._handle_learning(item, response, moment, data)
            case ItemStatus.REVIEW:
                return self._handle_review(item, response, moment, data)
            case ItemStatus.SUSPENDED:
                return self._build(
                    item.status,
                    item.ease_factor,
                    item.interval,
                    item.repetitions,
                    item.due_date,
                    algorithm_data=item.algorithm_data,
                )
        raise InvalidItemDataError(f"Unknown item status: {item.status!r}")

    def initialize_new_card(self, item_id: str, now: datetime | None = None) -> Item:
        if not item_id:
            raise InvalidItemDataError("Item id is required")
        moment = ensure_aware(now or utc_now())
        return Item(
            id=item_id,
            status=ItemStatus.NEW,
            ease_factor=self._clamp_ease(self.settings.starting_ease),
            interval=C.DEFAULT_INTERVAL,
            repetitions=0,
            due_date=moment,
            last_review=None,
            algorithm_data=Sm2Data(version=self.version),
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
                box = max(1, min(box, C.SM2_MAX_MIGRATED_BOX))
                interval, ease = 2 ** (box - 1), self.settings.starting_ease
            case Sm2Data() | LegacyData() | None if from_algorithm != C.LEITNER_NAME:
                interval, ease = max(1, item.interval), item.ease_factor
            case _:
                # tagged as Leitner but no box on record: treat as box 1
                interval, ease = 1, self.settings.starting_ease

        logger.debug(f"Migrated {item.id} from {from_algorithm} to {self.name}")
        return replace(
            item,
            ease_factor=self._clamp_ease(ease),
            interval=interval,
            repetitions=max(0, item.repetitions),
            algorithm_data=Sm2Data(
                version=self.version,
                migrated_from=from_algorithm,
                migrated_at=moment,
            ),
        )

    # ------------------------------------------------------------------
    # Per-status handlers
    # ------------------------------------------------------------------

    def _handle_new(
        self, item: Item, response: Response, moment: datetime, data: Sm2Data
    ) -> ItemUpdate:
        steps = self.settings.learning_steps

        match response:
            case Response.EASY:
                return self._build(
                    ItemStatus.REVIEW,
                    item.ease_factor + self.settings.ease_bonus,
                    steps.easy_interval,
                    1,
                    add_days(moment, steps.easy_interval),
                    graduated_today=True,
                    algorithm_data=data,
                )
            case Response.AGAIN | Response.HARD | Response.GOOD:
                return self._build(
                    ItemStatus.LEARNING,
                    item.ease_factor,
                    steps.initial[0],
                    item.repetitions,
                    add_minutes(moment, steps.initial[0]),
                    algorithm_data=data,
                )
        raise ValueError(f"Unknown response: {response!r}")

    def _handle_learning(
        self, item: Item, response: Response, moment: datetime, data: Sm2Data
    ) -> ItemUpdate:
        cfg = self.settings
        relearning = item.repetitions > 0
        steps = cfg.learning_steps.relearning if relearning else cfg.learning_steps.initial
        step_index = steps.index(item.interval) if item.interval in steps else -1
        graduated_reps = item.repetitions if relearning else 1

        match response:
            case Response.AGAIN:
                ease = item.ease_factor - cfg.lapse_ease_penalty if relearning else item.ease_factor
                return self._learning_step(item, ease, steps[0], moment, data)
            case Response.HARD:
                # an interval that matches no configured step falls back to step 0
                interval = steps[max(0, step_index)]
                return self._learning_step(item, item.ease_factor, interval, moment, data)
            case Response.GOOD:
                next_index = step_index + 1
                if next_index < len(steps):
                    return self._learning_step(item, item.ease_factor, steps[next_index], moment, data)
                graduating = cfg.learning_steps.graduating_interval
                return self._build(
                    ItemStatus.REVIEW,
                    item.ease_factor,
                    graduating,
                    graduated_reps,
                    add_days(moment, graduating),
                    graduated_today=True,
                    algorithm_data=data,
                )
            case Response.EASY:
                easy = cfg.learning_steps.easy_interval
                return self._build(
                    ItemStatus.REVIEW,
                    item.ease_factor + cfg.ease_bonus,
                    easy,
                    graduated_reps,
                    add_days(moment, easy),
                    graduated_today=True,
                    algorithm_data=data,
                )
        raise ValueError(f"Unknown response: {response!r}")

    def _handle_review(
        self, item: Item, response: Response, moment: datetime, data: Sm2Data
    ) -> ItemUpdate:
        cfg = self.settings

        match response:
            case Response.AGAIN:
                step = cfg.learning_steps.relearning[0]
                return self._build(
                    ItemStatus.LEARNING,
                    item.ease_factor - cfg.lapse_ease_penalty,
                    step,
                    item.repetitions,
                    add_minutes(moment, step),
                    algorithm_data=data,
                )
            case Response.HARD:
                ease = item.ease_factor - cfg.hard_ease_penalty
                interval = round_half_up(item.interval * cfg.hard_multiplier)
            case Response.GOOD:
                ease = item.ease_factor
                if item.repetitions == 0:
                    interval = 1
                elif item.repetitions == 1:
                    interval = C.SM2_SECOND_REVIEW_INTERVAL
                else:
                    interval = round_half_up(
                        item.interval * item.ease_factor * cfg.new_interval_multiplier
                    )
            case Response.EASY:
                ease = item.ease_factor + cfg.ease_bonus
                if item.repetitions == 0:
                    interval = cfg.learning_steps.easy_interval
                else:
                    interval = round_half_up(
                        item.interval
                        * item.ease_factor
                        * cfg.easy_multiplier
                        * cfg.new_interval_multiplier
                    )
            case _:
                raise ValueError(f"Unknown response: {response!r}")

        interval = max(1, interval)
        return self._build(
            ItemStatus.REVIEW,
            ease,
            interval,
            item.repetitions + 1,
            add_days(moment, interval),
            algorithm_data=data,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _learning_step(
        self, item: Item, ease: float, interval: int, moment: datetime, data: Sm2Data
    ) -> ItemUpdate:
        return self._build(
            ItemStatus.LEARNING,
            ease,
            interval,
            item.repetitions,
            add_minutes(moment, interval),
            algorithm_data=data,
        )

    def _build(
        self,
        status: ItemStatus,
        ease: float,
        interval: int,
        repetitions: int,
        due_date: datetime,
        graduated_today: bool = False,
        algorithm_data=None,
    ) -> ItemUpdate:
        return ItemUpdate(
            status=status,
            ease_factor=self._clamp_ease(ease),
            interval=max(1, interval),
            repetitions=max(0, repetitions),
            due_date=due_date,
            graduated_today=graduated_today,
            algorithm_data=algorithm_data,
        )

    def _clamp_ease(self, ease: float) -> float:
        return min(self.settings.max_ease_factor, max(self.settings.min_ease_factor, ease))
