# Domain Package
from .errors import CadenceError, InvalidItemDataError, SessionStateError, UnknownAlgorithmError
from .models import (
    AlgorithmData,
    Item,
    ItemStatus,
    ItemUpdate,
    LeitnerData,
    LegacyData,
    Response,
    Sm2Data,
)
from .ports import ItemRepository, PersistResult, ProgressRepository

__all__ = [
    "AlgorithmData",
    "CadenceError",
    "InvalidItemDataError",
    "Item",
    "ItemRepository",
    "ItemStatus",
    "ItemUpdate",
    "LeitnerData",
    "LegacyData",
    "PersistResult",
    "ProgressRepository",
    "Response",
    "SessionStateError",
    "Sm2Data",
    "UnknownAlgorithmError",
]
