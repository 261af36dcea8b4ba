"""
Switching a collection of items from one scheduling algorithm to another.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cadence.application.registry import AlgorithmRegistry
from cadence.application.utils.time import ensure_aware, utc_now
from cadence.domain import constants as C
from cadence.domain.errors import CadenceError
from cadence.domain.models import Item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlgorithmSettings:
    """Which algorithm a scope uses and how it is configured."""

    name: str = C.DEFAULT_ALGORITHM
    config: dict[str, Any] = field(default_factory=dict)
    version: str | None = None


@dataclass
class MigrationResult:
    migrated: list[Item] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def migrated_count(self) -> int:
        return len(self.migrated)


def change_algorithm(
    items: Iterable[Item],
    from_settings: AlgorithmSettings,
    to_settings: AlgorithmSettings,
    registry: AlgorithmRegistry,
    now: datetime | None = None,
) -> MigrationResult:
    """
    Migrate every item to ``to_settings``.

    The target algorithm must exist (``UnknownAlgorithmError`` propagates);
    per-item failures are collected in ``errors`` and the remaining items
    are still migrated.
    """
    target = registry.create_algorithm(to_settings.name, to_settings.config)
    moment = ensure_aware(now or utc_now())
    result = MigrationResult()

    for item in items:
        try:
            result.migrated.append(target.migrate_card(item, from_settings.name, moment))
        except CadenceError as e:
            logger.warning(f"Failed to migrate item {getattr(item, 'id', None)!r}: {e}")
            result.errors.append(f"{getattr(item, 'id', None)}: {e}")

    logger.info(
        f"Migrated {result.migrated_count} items from {from_settings.name} "
        f"to {to_settings.name} ({len(result.errors)} errors)"
    )
    return result
