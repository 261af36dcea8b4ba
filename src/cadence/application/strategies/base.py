"""
Scheduling strategy contract.

Every algorithm computes the next state of an item from a response. The
computation is a pure function of (item snapshot, response, timestamp):
no I/O, no hidden clock reads once ``now`` is supplied.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel

from cadence.application.utils.time import ensure_aware, utc_now
from cadence.domain.errors import InvalidItemDataError
from cadence.domain.models import Item, ItemStatus, ItemUpdate, Response


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Merge ``overrides`` over ``defaults``.

    Nested mappings are merged key by key so a partial ``learning_steps``
    override keeps the remaining default steps.
    """
    merged: dict[str, Any] = dict(defaults)
    for key, value in (overrides or {}).items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def coerce_response(response: Response | str) -> Response:
    try:
        return Response(response)
    except ValueError:
        raise ValueError(f"Unknown response: {response!r}") from None


class SchedulingStrategy(ABC):
    """
    Base class for spaced repetition algorithms.

    Subclasses declare ``name``, ``version`` and a pydantic ``config_model``
    whose field defaults are the algorithm's default configuration.
    """

    name: ClassVar[str]
    version: ClassVar[str]
    config_model: ClassVar[type[BaseModel]]

    def __init__(self, config: Mapping[str, Any] | None = None):
        """
        Args:
            config: Partial configuration merged over the defaults.

        Raises:
            pydantic.ValidationError: if the merged configuration is inconsistent.
        """
        self._settings = self.config_model.model_validate(
            merge_config(self.default_config(), config)
        )

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        return cls.config_model().model_dump()

    def get_config(self) -> dict[str, Any]:
        return self._settings.model_dump()

    def update_config(self, new_config: Mapping[str, Any]) -> None:
        self._settings = self.config_model.model_validate(
            merge_config(self.get_config(), new_config)
        )

    # ------------------------------------------------------------------
    # Algorithm specific
    # ------------------------------------------------------------------

    @abstractmethod
    def calculate_next_review(
        self,
        item: Item,
        response: Response | str,
        now: datetime | None = None,
    ) -> ItemUpdate:
        """
        Compute the state that follows ``response`` on ``item``.

        Raises:
            InvalidItemDataError: if ``item`` is structurally malformed.
        """

    @abstractmethod
    def initialize_new_card(self, item_id: str, now: datetime | None = None) -> Item:
        """Build a fresh item in ``new`` status with this algorithm's defaults."""

    @abstractmethod
    def migrate_card(
        self,
        item: Item,
        from_algorithm: str,
        now: datetime | None = None,
    ) -> Item:
        """
        Convert an item scheduled by ``from_algorithm`` to this algorithm.

        Best effort and lossy, but the result always satisfies the item invariants.
        """

    # ------------------------------------------------------------------
    # Shared behaviour
    # ------------------------------------------------------------------

    def validate_card(self, item: Item) -> bool:
        """Structural sanity only: identity present, numeric fields numeric."""
        return bool(
            isinstance(getattr(item, "id", None), str)
            and item.id
            and isinstance(getattr(item, "status", None), ItemStatus)
            and _is_number(getattr(item, "ease_factor", None))
            and _is_int(getattr(item, "interval", None))
            and _is_int(getattr(item, "repetitions", None))
            and isinstance(getattr(item, "due_date", None), datetime)
        )

    def ensure_valid(self, item: Item) -> None:
        if not self.validate_card(item):
            raise InvalidItemDataError(
                f"Invalid item data for {self.name}: {getattr(item, 'id', None)!r}"
            )

    def get_cards_for_review(
        self, items: Iterable[Item], now: datetime | None = None
    ) -> list[Item]:
        """Non-suspended items whose due date has passed."""
        moment = ensure_aware(now or utc_now())
        return [
            item
            for item in items
            if item.status is not ItemStatus.SUSPENDED and ensure_aware(item.due_date) <= moment
        ]

    def sort_cards_by_priority(self, items: Iterable[Item]) -> list[Item]:
        """new < learning < review < suspended, ties broken by earlier due date."""
        return sorted(items, key=lambda item: (item.status.priority, ensure_aware(item.due_date)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, version={self.version!r})"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
