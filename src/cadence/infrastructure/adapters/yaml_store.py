"""
YAML item store: one ``<scope>.yaml`` file per scope under a data directory.

File layout:

    items:
      - id: card-1
        status: review
        ...

Keys the codec does not model, such as hand-written ``front`` or
``notes`` fields, survive write-backs.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any

import yaml
import yaml.constructor
from pydantic import TypeAdapter

from cadence.application.stats import calculate_study_streak
from cadence.domain.errors import InvalidItemDataError
from cadence.domain.models import Item
from cadence.domain.ports import ItemRepository, PersistResult, ProgressRepository
from cadence.domain.stats.models import SessionSummary
from cadence.infrastructure.codec import item_from_record, item_to_record, merge_record

logger = logging.getLogger(__name__)

PROGRESS_FILE = ".progress.yaml"

_summary_adapter = TypeAdapter(SessionSummary)


class UniqueKeyLoader(yaml.SafeLoader):
    """Custom YAML loader that forbids duplicate keys."""

    def construct_mapping(self, node, deep=False):
        mapping = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            mapping.add(key)
        return super().construct_mapping(node, deep)


class YamlItemRepository(ItemRepository):
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._scope_of: dict[str, str] = {}

    def path_for(self, scope: str) -> Path:
        if not scope or "/" in scope or "\\" in scope or scope.startswith("."):
            raise ValueError(f"Invalid scope name: {scope!r}")
        return self.data_dir / f"{scope}.yaml"

    async def load_items_for_scope(self, scope: str) -> list[Item]:
        items = [item_from_record(record) for record in self._read_records(scope)]
        for item in items:
            self._scope_of[item.id] = scope
        return items

    async def persist(self, item: Item, snapshot: Item) -> PersistResult:
        scope = self._scope_for(item.id)
        records = self._read_records(scope)
        for index, record in enumerate(records):
            if record.get("id") != item.id:
                continue
            if item_from_record(record) != snapshot:
                logger.warning(f"Stale write rejected for item {item.id}")
                return PersistResult(
                    item_id=item.id,
                    ok=False,
                    conflict=True,
                    message="Stored item changed since it was loaded",
                )
            records[index] = merge_record(record, item)
            self._write_records(scope, records)
            return PersistResult(item_id=item.id, ok=True)

        return PersistResult(item_id=item.id, ok=False, message="Item not found")

    def save_items(self, scope: str, items: list[Item]) -> None:
        """Replace the whole scope file."""
        self._write_records(scope, [item_to_record(item) for item in items])

    def add_items(self, scope: str, items: list[Item]) -> None:
        """Append new items, leaving stored records untouched."""
        records = self._read_records(scope)
        records.extend(item_to_record(item) for item in items)
        self._write_records(scope, records)
        for item in items:
            self._scope_of[item.id] = scope

    def scopes(self) -> list[str]:
        if not self.data_dir.exists():
            return []
        return sorted(
            path.stem for path in self.data_dir.glob("*.yaml") if not path.name.startswith(".")
        )

    def _scope_for(self, item_id: str) -> str:
        if item_id in self._scope_of:
            return self._scope_of[item_id]
        for scope in self.scopes():
            if any(record.get("id") == item_id for record in self._read_records(scope)):
                return scope
        return ""

    def _read_records(self, scope: str) -> list[dict[str, Any]]:
        if not scope:
            return []
        path = self.path_for(scope)
        if not path.exists():
            return []

        try:
            doc = yaml.load(path.read_text(encoding="utf-8"), Loader=UniqueKeyLoader) or {}
        except yaml.YAMLError as e:
            raise InvalidItemDataError(f"Could not parse {path}: {e}") from e

        records = doc.get("items", []) if isinstance(doc, dict) else None
        if not isinstance(records, list):
            raise InvalidItemDataError(f"{path}: 'items' must be a list")
        return records

    def _write_records(self, scope: str, records: list[dict[str, Any]]) -> None:
        path = self.path_for(scope)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.dump(
            {"items": records},
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
        path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote {len(records)} items to {path}")


class YamlProgressRepository(ProgressRepository):
    """Session summaries and study days in ``.progress.yaml`` beside the scope files."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / PROGRESS_FILE

    async def record_session_summary(self, summary: SessionSummary) -> None:
        doc = self._read()
        doc.setdefault("sessions", []).append(_summary_adapter.dump_python(summary, mode="json"))
        self._write(doc)

    async def update_learner_streak(self, learner_id: str, day: date) -> int:
        doc = self._read()
        days = doc.setdefault("study_days", {}).setdefault(learner_id, [])
        if day.isoformat() not in days:
            days.append(day.isoformat())
            days.sort()
        self._write(doc)
        return calculate_study_streak(
            (d if isinstance(d, date) else date.fromisoformat(d) for d in days), day
        )

    def sessions(self) -> list[SessionSummary]:
        return [_summary_adapter.validate_python(s) for s in self._read().get("sessions", [])]

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        return yaml.load(self.path.read_text(encoding="utf-8"), Loader=UniqueKeyLoader) or {}

    def _write(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.dump(doc, sort_keys=False, allow_unicode=True), encoding="utf-8")
