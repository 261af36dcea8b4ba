# Infrastructure Adapters
from .memory_store import InMemoryItemRepository, InMemoryProgressRepository
from .yaml_store import YamlItemRepository, YamlProgressRepository

__all__ = [
    "InMemoryItemRepository",
    "InMemoryProgressRepository",
    "YamlItemRepository",
    "YamlProgressRepository",
]
