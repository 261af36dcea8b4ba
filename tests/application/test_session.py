from datetime import timedelta

import pytest

from cadence.application.session import SessionConfig, SessionState, StudySession
from cadence.application.strategies import Sm2Strategy
from cadence.domain.errors import SessionStateError
from cadence.domain.models import ItemStatus, Response


@pytest.fixture
def start_session(now):
    def _start(items, config=None):
        session = StudySession(
            Sm2Strategy(),
            learner_id="learner-1",
            scope_id="deck",
            config=config,
            clock=lambda: now,
        )
        session.initialize_session(items, now)
        return session

    return _start


@pytest.fixture
def new_items(make_item):
    return [make_item(f"n{n:02d}") for n in range(12)]


def ids(items):
    return [item.id for item in items]


# --- Initialization ---


def test_initialize_selects_due_items_in_priority_order(start_session, queue_items):
    session = start_session(queue_items)

    assert session.get_current_card().id == "new-1"
    assert session.get_progress() == {"current": 0, "total": 5, "percentage": 0}
    assert session.get_remaining_cards_by_status() == {"new": 2, "learning": 2, "review": 1}
    assert session.state is SessionState.ACTIVE


def test_initialize_caps_new_and_review(start_session, queue_items):
    session = start_session(queue_items, SessionConfig(max_new_cards=1, max_review_cards=0))

    assert session.get_remaining_cards_by_status() == {"new": 1, "learning": 2, "review": 0}


def test_empty_session_is_already_exhausted(start_session):
    session = start_session([])

    assert session.is_completed()
    assert session.get_current_card() is None
    assert session.get_progress() == {"current": 0, "total": 0, "percentage": 0}
    with pytest.raises(SessionStateError):
        session.process_response(Response.GOOD)


def test_session_id_format(start_session):
    session = start_session([])
    assert session.session_id.startswith("session_")
    assert len(session.session_id) == len("session_") + 26


# --- Responses ---


def test_learning_response_is_reinserted(start_session, new_items):
    session = start_session(new_items)

    outcome = session.process_response(Response.GOOD, 1200)

    assert outcome.update.status is ItemStatus.LEARNING
    assert outcome.item.id == "n00"
    assert outcome.next_item.id == "n01"
    # 11 items after the cursor -> gap of 1
    assert session.history[0].reinserted_at == 2
    assert session.get_progress()["total"] == 13


def test_reinserted_item_comes_back_with_new_state(start_session, make_item):
    session = start_session([make_item("only")])

    outcome = session.process_response(Response.GOOD)

    assert outcome.next_item.id == "only"
    assert outcome.next_item.status is ItemStatus.LEARNING
    assert not session.is_completed()


def test_graduated_item_is_not_reinserted(start_session, make_item):
    session = start_session([make_item("only")])

    outcome = session.process_response(Response.EASY)

    assert outcome.update.status is ItemStatus.REVIEW
    assert outcome.next_item is None
    assert session.history[0].reinserted_at is None
    assert session.is_completed()


def test_learning_due_beyond_window_is_not_reinserted(start_session, make_item):
    item = make_item("l", status=ItemStatus.LEARNING, interval=1)
    session = start_session([item], SessionConfig(learning_ahead_limit=5))

    outcome = session.process_response(Response.GOOD)

    assert outcome.update.interval == 10
    assert outcome.next_item is None


def test_review_lapse_is_always_reinserted(start_session, make_item, now):
    item = make_item("r", status=ItemStatus.REVIEW, interval=12, repetitions=3)
    session = start_session([item], SessionConfig(learning_ahead_limit=0))

    lapse = session.process_response(Response.AGAIN)
    assert lapse.next_item.status is ItemStatus.LEARNING

    relearned = session.process_response(Response.GOOD)
    assert relearned.update.status is ItemStatus.REVIEW
    assert session.is_completed()

    assert session.original_items() == {"r": item}
    assert session.updated_items()["r"] == relearned.item
    assert session.updated_items()["r"].repetitions == 3


def test_response_strings_accepted(start_session, make_item):
    session = start_session([make_item()])
    assert session.process_response("easy").update.status is ItemStatus.REVIEW


# --- Skip and undo ---


def test_skip_does_not_record_a_response(start_session, new_items):
    session = start_session(new_items[:2])

    assert session.skip_current_card().id == "n01"
    assert session.history == []
    assert session.updated_items() == {}


def test_undo_removes_reinserted_copy(start_session, new_items):
    session = start_session(new_items)
    session.process_response(Response.GOOD)

    assert session.undo_last_review() is True

    current = session.get_current_card()
    assert current.id == "n00"
    assert current.status is ItemStatus.NEW
    assert session.history == []
    assert session.get_progress()["total"] == 12


def test_undo_returns_to_the_answered_item(start_session, new_items):
    session = start_session(new_items)
    session.process_response(Response.EASY)
    session.skip_current_card()

    assert session.get_current_card().id == "n02"
    assert session.undo_last_review() is True
    assert session.get_current_card().id == "n00"


def test_undo_twice(start_session, new_items):
    session = start_session(new_items)
    session.process_response(Response.EASY)
    session.process_response(Response.GOOD)

    assert session.undo_last_review()
    assert session.undo_last_review()
    assert not session.undo_last_review()
    assert session.get_current_card().id == "n00"
    assert session.get_progress()["total"] == 12


def test_undo_with_nothing_to_undo(start_session, new_items):
    session = start_session(new_items)
    assert session.undo_last_review() is False


def test_undo_in_a_short_queue_removes_adjacent_copy(start_session, new_items):
    session = start_session(new_items[:3])
    outcome = session.process_response(Response.GOOD)

    assert outcome.next_item.id == "n00"
    assert session.get_progress()["total"] == 4
    assert session.undo_last_review() is True

    assert session.get_progress()["total"] == 3
    assert session.get_current_card().id == "n00"
    assert session.get_current_card().status is ItemStatus.NEW
    assert session.skip_current_card().id == "n01"
    assert session.history == []


def test_undo_is_a_noop_outside_an_active_session(start_session, new_items):
    session = start_session(new_items[:3])
    session.process_response(Response.GOOD)
    session.pause()

    assert session.undo_last_review() is False
    assert len(session.history) == 1

    session.end_session()
    assert session.undo_last_review() is False
    assert start_session([]).undo_last_review() is False


# --- Lifecycle ---


def test_pause_blocks_responses(start_session, new_items):
    session = start_session(new_items)
    session.pause()

    assert session.state is SessionState.PAUSED
    with pytest.raises(SessionStateError):
        session.process_response(Response.GOOD)
    with pytest.raises(SessionStateError):
        session.skip_current_card()

    session.resume()
    assert session.process_response(Response.GOOD).item.id == "n00"


def test_resume_requires_paused(start_session, new_items):
    session = start_session(new_items)
    with pytest.raises(SessionStateError):
        session.resume()


def test_end_session_is_idempotent(start_session, new_items, now):
    session = start_session(new_items)
    session.process_response(Response.GOOD)

    first = session.end_session(now + timedelta(minutes=2))
    second = session.end_session(now + timedelta(minutes=9))

    assert first == second
    assert first.study_duration == 120
    assert session.state is SessionState.COMPLETED
    assert session.is_completed()
    assert session.get_current_card() is None
    with pytest.raises(SessionStateError):
        session.process_response(Response.GOOD)
    assert session.undo_last_review() is False


def test_stats_and_summary(start_session, make_item, now):
    items = [
        make_item("new"),
        make_item("learning", status=ItemStatus.LEARNING, interval=10),
        make_item("review", status=ItemStatus.REVIEW, interval=6, repetitions=2),
    ]
    session = start_session(items)

    session.process_response(Response.EASY, 1000)  # new
    session.process_response(Response.AGAIN, 3000)  # learning, re-inserted
    session.process_response(Response.AGAIN, 2000)  # learning copy
    stats = session.get_stats(now + timedelta(minutes=1))

    assert stats.completed_cards == 3
    assert stats.new_cards_learned == 1
    assert stats.learning_cards_completed == 2
    assert stats.review_cards_completed == 0
    assert stats.correct_answers == 1
    assert stats.accuracy_rate == pytest.approx(100 / 3)
    assert stats.average_response_time == 2000
    assert stats.study_duration == 60
    assert stats.ended_at is None

    summary = session.end_session(now + timedelta(minutes=5))
    assert summary.learner_id == "learner-1"
    assert summary.scope_id == "deck"
    assert summary.cards_studied == 3
    assert summary.correct_answers == 1
    assert summary.study_duration == 300
    assert summary.session_date == now
    assert summary.stats.ended_at == now + timedelta(minutes=5)


def test_progress_percentage(start_session, make_item):
    session = start_session([make_item("a"), make_item("b"), make_item("c")])
    session.process_response(Response.EASY)

    assert session.get_progress() == {"current": 1, "total": 3, "percentage": 33}
