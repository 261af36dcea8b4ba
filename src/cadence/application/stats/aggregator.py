"""
Stats aggregator: reduces finished sessions into persisted rollups.

This is a pure computation module with no I/O.
"""

from collections.abc import Iterable
from datetime import date, timedelta

from cadence.application.session import StudySession
from cadence.domain import constants as C
from cadence.domain.stats.models import DailyStats, SessionSummary


def summarize_session(session: StudySession) -> SessionSummary:
    """Final summary for a session, ending it if it is still running."""
    return session.end_session()


def merge_daily_stats(existing: DailyStats | None, summary: SessionSummary) -> DailyStats:
    """
    Fold one session summary into the learner's stats for the session's day.

    The first session of a day sets completion to its accuracy; each later
    session adds a quarter of its accuracy. Completion is capped at 100.
    """
    stats = summary.stats
    minutes = summary.study_duration // 60

    if existing is None:
        return DailyStats(
            learner_id=summary.learner_id,
            date=summary.session_date.date(),
            cards_studied=summary.cards_studied,
            new_cards_learned=stats.new_cards_learned,
            review_cards_completed=stats.review_cards_completed,
            study_time_minutes=minutes,
            completion_percentage=min(100.0, stats.accuracy_rate),
        )

    return DailyStats(
        learner_id=existing.learner_id,
        date=existing.date,
        cards_studied=existing.cards_studied + summary.cards_studied,
        new_cards_learned=existing.new_cards_learned + stats.new_cards_learned,
        review_cards_completed=existing.review_cards_completed + stats.review_cards_completed,
        study_time_minutes=existing.study_time_minutes + minutes,
        completion_percentage=min(
            100.0,
            existing.completion_percentage
            + stats.accuracy_rate / C.REPEAT_SESSION_COMPLETION_DIVISOR,
        ),
    )


def calculate_study_streak(days_studied: Iterable[date], today: date) -> int:
    """Consecutive days ending at ``today`` on which the learner studied."""
    studied = set(days_studied)
    streak = 0
    day = today
    while day in studied:
        streak += 1
        day -= timedelta(days=1)
    return streak
