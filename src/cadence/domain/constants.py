"""Centralized constants for the cadence scheduling engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Algorithms ----------
SM2_NAME = "anki-sm2"
SM2_VERSION = "2.1.0"
LEITNER_NAME = "leitner"
LEITNER_VERSION = "1.0.0"
DEFAULT_ALGORITHM = SM2_NAME

# ---------- Item defaults ----------
DEFAULT_EASE_FACTOR = 2.5
DEFAULT_INTERVAL = 1

# ---------- SM-2 ----------
SM2_INITIAL_STEPS = [1, 10]  # minutes
SM2_RELEARNING_STEPS = [10]  # minutes
SM2_GRADUATING_INTERVAL = 1  # days
SM2_EASY_INTERVAL = 4  # days
SM2_MIN_EASE = 1.3
SM2_MAX_EASE = 3.0
SM2_EASE_BONUS = 0.15
SM2_HARD_EASE_PENALTY = 0.15
SM2_LAPSE_EASE_PENALTY = 0.2
SM2_HARD_MULTIPLIER = 1.2
SM2_EASY_MULTIPLIER = 1.3
SM2_NEW_INTERVAL_MULTIPLIER = 1.0
SM2_SECOND_REVIEW_INTERVAL = 6  # days
# Leitner boxes are clamped to this range when migrating to SM-2 (2 ** 9 = 512 days)
SM2_MAX_MIGRATED_BOX = 10

# ---------- Leitner ----------
LEITNER_BOX_COUNT = 5
LEITNER_BOX_INTERVALS = [1, 3, 7, 14, 30]  # days
LEITNER_GRADUATED_BOX = 4

# Mastery thresholds on historical success rate
MASTERY_BEGINNER_RATE = 0.3
MASTERY_INTERMEDIATE_RATE = 0.6
MASTERY_ADVANCED_RATE = 0.8

# ---------- Queue Builder ----------
DEFAULT_MAX_NEW_PER_DAY = 20
DEFAULT_MAX_REVIEW_PER_DAY = 100
DEFAULT_LEARNING_AHEAD_MINUTES = 20
DEFAULT_REVIEW_AHEAD_DAYS = 1
DEFAULT_WORKLOAD_DAYS = 7

SECONDS_PER_NEW_CARD = 30
SECONDS_PER_LEARNING_CARD = 20
SECONDS_PER_REVIEW_CARD = 15

# ---------- Session ----------
MAX_REINSERT_GAP = 4
REINSERT_GAP_RATIO = 0.1

# ---------- Daily stats ----------
REPEAT_SESSION_COMPLETION_DIVISOR = 4
