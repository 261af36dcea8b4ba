# Application Stats Package
from cadence.domain.stats.models import DailyStats, SessionStats, SessionSummary

from .aggregator import calculate_study_streak, merge_daily_stats, summarize_session

__all__ = [
    "DailyStats",
    "SessionStats",
    "SessionSummary",
    "calculate_study_streak",
    "merge_daily_stats",
    "summarize_session",
]
