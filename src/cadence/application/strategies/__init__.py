# Scheduling Strategies Package
from .base import SchedulingStrategy, merge_config
from .leitner import LeitnerConfig, LeitnerStrategy, MasteryLevel
from .sm2 import LearningSteps, Sm2Config, Sm2Strategy

__all__ = [
    "LearningSteps",
    "LeitnerConfig",
    "LeitnerStrategy",
    "MasteryLevel",
    "SchedulingStrategy",
    "Sm2Config",
    "Sm2Strategy",
    "merge_config",
]
