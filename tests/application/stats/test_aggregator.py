from datetime import date, datetime, timedelta, timezone

import pytest

from cadence.application.session import StudySession
from cadence.application.stats import (
    DailyStats,
    SessionStats,
    SessionSummary,
    calculate_study_streak,
    merge_daily_stats,
    summarize_session,
)
from cadence.application.strategies import LeitnerStrategy
from cadence.domain.models import Response

STARTED = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def make_summary(cards=10, correct=8, duration=600, new=4, review=6):
    accuracy = correct / cards * 100 if cards else 0.0
    stats = SessionStats(
        total_cards=cards,
        completed_cards=cards,
        new_cards_learned=new,
        learning_cards_completed=0,
        review_cards_completed=review,
        correct_answers=correct,
        average_response_time=1500.0,
        accuracy_rate=accuracy,
        started_at=STARTED,
        ended_at=STARTED + timedelta(seconds=duration),
        study_duration=duration,
    )
    return SessionSummary(
        session_id="session_1",
        learner_id="learner-1",
        scope_id="deck",
        cards_studied=cards,
        correct_answers=correct,
        study_duration=duration,
        session_date=STARTED,
        stats=stats,
    )


def test_first_session_of_the_day():
    daily = merge_daily_stats(None, make_summary())

    assert daily == DailyStats(
        learner_id="learner-1",
        date=date(2024, 1, 15),
        cards_studied=10,
        new_cards_learned=4,
        review_cards_completed=6,
        study_time_minutes=10,
        completion_percentage=80.0,
    )


def test_later_sessions_accumulate():
    first = merge_daily_stats(None, make_summary())
    second = merge_daily_stats(first, make_summary(cards=4, correct=2, duration=150, new=0, review=4))

    assert second.cards_studied == 14
    assert second.new_cards_learned == 4
    assert second.review_cards_completed == 10
    assert second.study_time_minutes == 12
    assert second.completion_percentage == pytest.approx(92.5)


def test_completion_is_capped():
    daily = merge_daily_stats(None, make_summary(cards=5, correct=5))
    daily = merge_daily_stats(daily, make_summary(cards=5, correct=5))

    assert daily.completion_percentage == 100.0


def test_summarize_session_ends_it(make_item, now):
    session = StudySession(LeitnerStrategy(), learner_id="learner-1", clock=lambda: now)
    session.initialize_session([make_item("a")], now)
    session.process_response(Response.GOOD, 800)

    summary = summarize_session(session)

    assert session.is_completed()
    assert summary.cards_studied == 1
    assert summary.correct_answers == 1
    assert summary.stats.average_response_time == 800


@pytest.mark.parametrize(
    "offsets, streak",
    [
        ([], 0),
        ([0], 1),
        ([0, 1, 2], 3),
        ([0, 1, 3, 4], 2),
        ([1, 2, 3], 0),
    ],
)
def test_study_streak(offsets, streak):
    today = date(2024, 1, 15)
    days = [today - timedelta(days=offset) for offset in offsets]

    assert calculate_study_streak(days, today) == streak
