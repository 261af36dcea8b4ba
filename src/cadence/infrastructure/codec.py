"""
Persisted item representation.

Items are stored as flat records with an algorithm-tagged data blob:

    {"id": ..., "status": "review", "ease_factor": 2.5, "interval": 6,
     "repetitions": 2, "due_date": "...", "last_review": "...",
     "algorithm_data": {"algorithm_name": "anki-sm2",
                        "algorithm_version": "2.1.0", ...}}

Reading then writing a record reproduces it exactly.
"""

import logging
from collections.abc import Collection, Mapping
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cadence.domain import constants as C
from cadence.domain.errors import InvalidItemDataError
from cadence.domain.models import (
    AlgorithmData,
    Item,
    ItemStatus,
    LeitnerData,
    LegacyData,
    Response,
    Sm2Data,
)

logger = logging.getLogger(__name__)


class ItemRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    status: ItemStatus
    ease_factor: float
    interval: int
    repetitions: int
    due_date: datetime
    last_review: datetime | None = None
    created_at: datetime | None = None
    algorithm_data: dict[str, Any] | None = None


class Sm2Blob(BaseModel):
    model_config = ConfigDict(extra="ignore")

    algorithm_name: Literal["anki-sm2"] = C.SM2_NAME
    algorithm_version: str = C.SM2_VERSION
    last_response: Response | None = None
    response_time: datetime | None = None
    migrated_from: str | None = None
    migrated_at: datetime | None = None


class LeitnerBlob(BaseModel):
    model_config = ConfigDict(extra="ignore")

    algorithm_name: Literal["leitner"] = C.LEITNER_NAME
    algorithm_version: str = C.LEITNER_VERSION
    leitner_box: int = 1
    previous_box: int | None = None
    success_count: int = 0
    failure_count: int = 0
    last_response: Response | None = None
    response_time: datetime | None = None
    migrated_from: str | None = None
    migrated_at: datetime | None = None


_BLOB_FIELDS = {
    C.SM2_NAME: Sm2Blob.model_fields.keys(),
    C.LEITNER_NAME: LeitnerBlob.model_fields.keys(),
}


def item_from_record(record: Mapping[str, Any] | ItemRecord) -> Item:
    """
    Decode a stored record.

    Raises:
        InvalidItemDataError: if the record or its data blob is malformed.
    """
    try:
        parsed = record if isinstance(record, ItemRecord) else ItemRecord.model_validate(record)
        data = decode_algorithm_data(parsed.algorithm_data, parsed.id)
    except ValidationError as e:
        item_id = record.get("id") if isinstance(record, Mapping) else None
        raise InvalidItemDataError(f"Invalid item record {item_id!r}: {e}") from e

    return Item(
        id=parsed.id,
        status=parsed.status,
        ease_factor=parsed.ease_factor,
        interval=parsed.interval,
        repetitions=parsed.repetitions,
        due_date=parsed.due_date,
        last_review=parsed.last_review,
        algorithm_data=data,
        created_at=parsed.created_at,
    )


def item_to_record(item: Item) -> dict[str, Any]:
    """Encode an item as a JSON/YAML-ready dict."""
    record = ItemRecord(
        id=item.id,
        status=item.status,
        ease_factor=item.ease_factor,
        interval=item.interval,
        repetitions=item.repetitions,
        due_date=item.due_date,
        last_review=item.last_review,
        created_at=item.created_at,
        algorithm_data=encode_algorithm_data(item.algorithm_data),
    )
    return record.model_dump(mode="json", exclude_none=True)


def merge_record(stored: Mapping[str, Any], item: Item) -> dict[str, Any]:
    """
    Encode ``item`` over the record it was read from.

    Keys the codec does not model (top level, or inside an algorithm blob
    whose algorithm is unchanged) are carried over in their stored order.
    """
    fresh = item_to_record(item)
    blob = fresh.get("algorithm_data")
    stored_blob = stored.get("algorithm_data")
    if blob and isinstance(stored_blob, Mapping):
        known_blob = _BLOB_FIELDS.get(blob.get("algorithm_name"))
        if known_blob is not None and stored_blob.get("algorithm_name") == blob["algorithm_name"]:
            fresh["algorithm_data"] = _overlay(stored_blob, blob, known_blob)
    return _overlay(stored, fresh, ItemRecord.model_fields.keys())


def _overlay(
    stored: Mapping[str, Any], fresh: dict[str, Any], known: Collection[str]
) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key, value in stored.items():
        if key in fresh:
            merged[key] = fresh[key]
        elif key not in known:
            merged[key] = value
    for key, value in fresh.items():
        merged.setdefault(key, value)
    return merged


def decode_algorithm_data(
    blob: Mapping[str, Any] | None, item_id: str = ""
) -> AlgorithmData | None:
    if not blob:
        return None

    name = blob.get("algorithm_name")
    match name:
        case C.SM2_NAME:
            sm2 = Sm2Blob.model_validate(blob)
            return Sm2Data(
                version=sm2.algorithm_version,
                last_response=sm2.last_response,
                response_time=sm2.response_time,
                migrated_from=sm2.migrated_from,
                migrated_at=sm2.migrated_at,
            )
        case C.LEITNER_NAME:
            leitner = LeitnerBlob.model_validate(blob)
            return LeitnerData(
                version=leitner.algorithm_version,
                box=leitner.leitner_box,
                previous_box=leitner.previous_box,
                success_count=leitner.success_count,
                failure_count=leitner.failure_count,
                last_response=leitner.last_response,
                response_time=leitner.response_time,
                migrated_from=leitner.migrated_from,
                migrated_at=leitner.migrated_at,
            )
        case _:
            logger.warning(f"Item {item_id} has data from unknown algorithm {name!r}, keeping it as-is")
            fields = {k: v for k, v in blob.items() if k not in ("algorithm_name", "algorithm_version")}
            version = blob.get("algorithm_version")
            return LegacyData(
                algorithm_name=str(name) if name is not None else "unknown",
                version=str(version) if version is not None else None,
                fields=fields,
            )


def encode_algorithm_data(data: AlgorithmData | None) -> dict[str, Any] | None:
    match data:
        case None:
            return None
        case Sm2Data():
            return Sm2Blob(
                algorithm_version=data.version,
                last_response=data.last_response,
                response_time=data.response_time,
                migrated_from=data.migrated_from,
                migrated_at=data.migrated_at,
            ).model_dump(mode="json", exclude_none=True)
        case LeitnerData():
            return LeitnerBlob(
                algorithm_version=data.version,
                leitner_box=data.box,
                previous_box=data.previous_box,
                success_count=data.success_count,
                failure_count=data.failure_count,
                last_response=data.last_response,
                response_time=data.response_time,
                migrated_from=data.migrated_from,
                migrated_at=data.migrated_at,
            ).model_dump(mode="json", exclude_none=True)
        case LegacyData():
            blob: dict[str, Any] = {"algorithm_name": data.algorithm_name}
            if data.version is not None:
                blob["algorithm_version"] = data.version
            blob.update(data.fields)
            return blob
    raise TypeError(f"Unsupported algorithm data: {type(data).__name__}")
