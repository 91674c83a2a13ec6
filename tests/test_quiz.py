from __future__ import annotations

import pytest

from study_buddy.models import QUIZ_LENGTH, EvaluationFeedback
from study_buddy.quiz import QuizError, QuizSession


def _answer(session: QuizSession, label: str) -> None:
    session.record_feedback("my answer", EvaluationFeedback(label, "why"))


def test_new_session_defaults():
    session = QuizSession()
    assert session.length == QUIZ_LENGTH == 5
    assert session.number == 0
    assert session.score == 0
    assert not session.is_complete
    assert not session.awaiting_answer


def test_score_counts_only_correct_answers():
    session = QuizSession()
    for idx, label in enumerate(
        ["Correct", "Incorrect", "Correct", "Partially Correct", "Correct"],
        start=1,
    ):
        session.record_question(f"Q{idx}")
        assert session.number == idx
        assert session.awaiting_answer
        _answer(session, label)
    assert session.is_complete
    assert session.score == 3
    assert [r.number for r in session.results] == [1, 2, 3, 4, 5]
    assert session.results[1].feedback.evaluation == "Incorrect"


def test_cannot_ask_more_than_length():
    session = QuizSession(length=1)
    session.record_question("Q1")
    _answer(session, "Correct")
    with pytest.raises(QuizError):
        session.record_question("Q2")
    assert session.questions_asked == ["Q1"]


def test_question_requires_previous_answer():
    session = QuizSession()
    session.record_question("Q1")
    with pytest.raises(QuizError):
        session.record_question("Q2")


def test_feedback_requires_pending_question():
    session = QuizSession()
    with pytest.raises(QuizError):
        _answer(session, "Correct")
    session.record_question("Q1")
    _answer(session, "Correct")
    with pytest.raises(QuizError):
        _answer(session, "Correct")
    assert session.score == 1
