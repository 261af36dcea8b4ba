"""
Algorithm registry.

Central table of scheduling algorithms. Consumers receive a registry
instance explicitly (see ``build_default_registry``); there is no global.

Construction and reconstruction deliberately differ:
- ``create_algorithm`` raises for an unregistered name.
- ``create_from_persisted_data`` logs a warning and falls back, so stored
  or legacy configuration never breaks a read path.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import ValidationError

from cadence.application.strategies import LeitnerStrategy, SchedulingStrategy, Sm2Strategy
from cadence.application.strategies.base import merge_config
from cadence.domain import constants as C
from cadence.domain.errors import UnknownAlgorithmError
from cadence.domain.models import Item, LegacyData, algorithm_name_of

logger = logging.getLogger(__name__)


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return list(Complexity).index(self)


@dataclass(frozen=True)
class AlgorithmDescriptor:
    """
    Registry entry for one algorithm.

    Attributes:
        name: Stable identifier stored alongside item data.
        display_name: Human readable name.
        version: Semantic version of the implementation.
        factory: Builds a configured strategy from a fully merged config.
        default_config: Configuration used when none is supplied.
        features: Marketing-level feature list used for comparisons.
        complexity: Rough learning curve of the algorithm for end users.
    """

    name: str
    display_name: str
    description: str
    version: str
    factory: Callable[[Mapping[str, Any]], SchedulingStrategy]
    default_config: dict[str, Any]
    features: tuple[str, ...] = ()
    complexity: Complexity = Complexity.MODERATE


@dataclass(frozen=True)
class ConfigValidation:
    """Structured outcome of ``validate_config``; never raised."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    missing_keys: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LearnerProfile:
    experience: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    study_goals: Literal["casual", "intensive", "exam-prep"] = "casual"
    simplicity: int = 3  # 1-5
    customization: int = 3  # 1-5


@dataclass(frozen=True)
class FeatureDiff:
    unique_to_first: list[str]
    unique_to_second: list[str]
    common: list[str]


@dataclass(frozen=True)
class AlgorithmComparison:
    first: AlgorithmDescriptor
    second: AlgorithmDescriptor
    complexity: str
    features: FeatureDiff
    recommendation: str


def describe_config_errors(error: ValidationError) -> list[str]:
    """Flatten a strategy config ``ValidationError`` into "location: message" lines."""
    lines = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "config"
        lines.append(f"{location}: {err['msg']}")
    return lines


class AlgorithmRegistry:
    """Registers strategies by name and builds configured instances."""

    def __init__(self, fallback: str = C.DEFAULT_ALGORITHM):
        self._algorithms: dict[str, AlgorithmDescriptor] = {}
        self.fallback = fallback

    def register(self, descriptor: AlgorithmDescriptor) -> None:
        if descriptor.name in self._algorithms:
            logger.info(f"Replacing registered algorithm '{descriptor.name}'")
        self._algorithms[descriptor.name] = descriptor

    def has_algorithm(self, name: str) -> bool:
        return name in self._algorithms

    def get_info(self, name: str) -> AlgorithmDescriptor | None:
        return self._algorithms.get(name)

    def available_algorithms(self) -> list[AlgorithmDescriptor]:
        return list(self._algorithms.values())

    def create_algorithm(
        self, name: str, config: Mapping[str, Any] | None = None
    ) -> SchedulingStrategy:
        """
        Build a strategy with ``config`` merged over the registered defaults.

        Raises:
            UnknownAlgorithmError: if ``name`` is not registered.
            pydantic.ValidationError: if the merged configuration is inconsistent.
        """
        descriptor = self._algorithms.get(name)
        if descriptor is None:
            raise UnknownAlgorithmError(name)
        return descriptor.factory(merge_config(descriptor.default_config, config))

    def create_from_persisted_data(
        self,
        name: str | None,
        version: str | None,
        config: Mapping[str, Any] | None = None,
    ) -> SchedulingStrategy:
        """
        Rebuild the strategy that wrote stored data.

        Unknown names fall back to the registry's fallback algorithm with a
        warning. A stored config the target cannot accept is dropped in
        favour of defaults, also with a warning.

        Raises:
            UnknownAlgorithmError: if the fallback algorithm itself is not
                registered.
        """
        descriptor = self._algorithms.get(name) if name else None
        if descriptor is None:
            logger.warning(f"Algorithm '{name}' not found, falling back to '{self.fallback}'")
            descriptor = self._algorithms.get(self.fallback)
            if descriptor is None:
                raise UnknownAlgorithmError(self.fallback)
        elif version and descriptor.version != version:
            logger.warning(
                f"Algorithm version mismatch for '{name}': "
                f"expected {descriptor.version}, got {version}"
            )

        if config is not None and not isinstance(config, Mapping):
            logger.warning(f"Stored config for '{descriptor.name}' is not a mapping, using defaults")
            config = None

        try:
            return self.create_algorithm(descriptor.name, config)
        except ValidationError as e:
            logger.warning(f"Stored config for '{descriptor.name}' rejected, using defaults: {e}")
            return self.create_algorithm(descriptor.name)

    def create_for_item(
        self, item: Item, config: Mapping[str, Any] | None = None
    ) -> SchedulingStrategy:
        """Rebuild the strategy named by an item's data tag."""
        data = item.algorithm_data
        version = data.version if data is not None else None
        if isinstance(data, LegacyData):
            logger.warning(f"Item {item.id} carries data from unknown algorithm '{data.algorithm_name}'")
        return self.create_from_persisted_data(algorithm_name_of(data), version, config)

    def validate_config(self, name: str, config: Mapping[str, Any]) -> ConfigValidation:
        """
        Check ``config`` against the algorithm's defaults without raising.

        Every top-level default key must be present; the merged result must
        also satisfy the algorithm's own consistency rules.
        """
        descriptor = self._algorithms.get(name)
        if descriptor is None:
            return ConfigValidation(valid=False, errors=[f"Algorithm '{name}' is not registered"])
        if not isinstance(config, Mapping):
            return ConfigValidation(valid=False, errors=["config: must be a mapping"])

        missing = [key for key in descriptor.default_config if key not in config]
        errors = [f"Missing required config key: {key}" for key in missing]

        try:
            descriptor.factory(merge_config(descriptor.default_config, config))
        except ValidationError as e:
            errors.extend(describe_config_errors(e))

        return ConfigValidation(valid=not errors, errors=errors, missing_keys=missing)

    def get_recommended_algorithm(self, profile: LearnerProfile) -> str:
        """Advisory only: pick an algorithm name for a learner profile."""
        algorithms = self.available_algorithms()

        if profile.experience == "beginner" or profile.simplicity >= 4:
            simple = next((a for a in algorithms if a.complexity is Complexity.SIMPLE), None)
            return simple.name if simple else self.fallback

        if profile.customization >= 4 and profile.experience == "advanced":
            advanced = next((a for a in algorithms if a.complexity is Complexity.ADVANCED), None)
            return advanced.name if advanced else self.fallback

        return self.fallback

    def compare_algorithms(self, first: str, second: str) -> AlgorithmComparison:
        """
        Feature and complexity diff between two registered algorithms.

        Raises:
            UnknownAlgorithmError: if either name is not registered.
        """
        a = self._algorithms.get(first)
        b = self._algorithms.get(second)
        if a is None:
            raise UnknownAlgorithmError(first)
        if b is None:
            raise UnknownAlgorithmError(second)

        features_b = set(b.features)
        features_a = set(a.features)
        diff = FeatureDiff(
            unique_to_first=[f for f in a.features if f not in features_b],
            unique_to_second=[f for f in b.features if f not in features_a],
            common=[f for f in a.features if f in features_b],
        )

        if a.complexity.rank < b.complexity.rank:
            recommendation = f"{a.display_name} is simpler and better for beginners"
        elif b.complexity.rank < a.complexity.rank:
            recommendation = f"{b.display_name} is simpler and better for beginners"
        elif len(diff.unique_to_first) > len(diff.unique_to_second):
            recommendation = f"{a.display_name} has more features"
        elif len(diff.unique_to_second) > len(diff.unique_to_first):
            recommendation = f"{b.display_name} has more features"
        else:
            recommendation = "Both algorithms are similarly capable"

        return AlgorithmComparison(
            first=a,
            second=b,
            complexity=(
                f"{a.display_name}: {a.complexity.value}, {b.display_name}: {b.complexity.value}"
            ),
            features=diff,
            recommendation=recommendation,
        )


def build_default_registry() -> AlgorithmRegistry:
    """A fresh registry holding the built-in algorithms."""
    registry = AlgorithmRegistry()
    registry.register(
        AlgorithmDescriptor(
            name=Sm2Strategy.name,
            display_name="Anki SM-2",
            description=(
                "The proven spaced repetition algorithm used by Anki, "
                "based on SM-2 with learning phases"
            ),
            version=Sm2Strategy.version,
            factory=Sm2Strategy,
            default_config=Sm2Strategy.default_config(),
            features=(
                "Learning phases",
                "Dynamic ease factor",
                "Graduated intervals",
                "Failure recovery",
                "Advanced scheduling",
            ),
            complexity=Complexity.MODERATE,
        )
    )
    registry.register(
        AlgorithmDescriptor(
            name=LeitnerStrategy.name,
            display_name="Leitner System",
            description="Simple box-based spaced repetition, easy to understand and configure",
            version=LeitnerStrategy.version,
            factory=LeitnerStrategy,
            default_config=LeitnerStrategy.default_config(),
            features=(
                "Box-based organization",
                "Simple progression",
                "Visual progress tracking",
                "Failure reset to box 1",
                "Predictable intervals",
            ),
            complexity=Complexity.SIMPLE,
        )
    )
    return registry
