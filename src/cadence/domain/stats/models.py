"""
Domain models for study statistics.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class SessionStats:
    """
    Rolling statistics of one study session.

    Attributes:
        total_cards: Current length of the session queue (grows on re-insertion).
        completed_cards: Responses processed so far.
        new_cards_learned: Responses given to items that were new.
        learning_cards_completed: Responses given to items that were learning.
        review_cards_completed: Responses given to items that were in review.
        correct_answers: Good or easy responses.
        average_response_time: Mean response time in milliseconds.
        accuracy_rate: Percentage (0-100) of correct answers.
        started_at: Session start.
        ended_at: Session end, None while running.
        study_duration: Elapsed seconds.
    """

    total_cards: int
    completed_cards: int
    new_cards_learned: int
    learning_cards_completed: int
    review_cards_completed: int
    correct_answers: int
    average_response_time: float
    accuracy_rate: float
    started_at: datetime
    ended_at: datetime | None
    study_duration: int


@dataclass(frozen=True)
class SessionSummary:
    """What the persistence collaborator stores for a finished session."""

    session_id: str
    learner_id: str
    scope_id: str
    cards_studied: int
    correct_answers: int
    study_duration: int  # seconds
    session_date: datetime
    stats: SessionStats


@dataclass(frozen=True)
class DailyStats:
    """
    Per-learner, per-day rollup of every session on that day.

    completion_percentage is 0-100.
    """

    learner_id: str
    date: date
    cards_studied: int = 0
    new_cards_learned: int = 0
    review_cards_completed: int = 0
    study_time_minutes: int = 0
    completion_percentage: float = 0.0
