"""Fixed-length quiz bookkeeping: asked questions, feedback, and score."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import QUIZ_LENGTH, EvaluationFeedback

__all__ = ["QuizError", "QuestionResult", "QuizSession"]


class QuizError(RuntimeError):
    """Raised when a quiz operation does not fit the session's progress."""


@dataclass(frozen=True)
class QuestionResult:
    """One answered question and how it was graded."""

    number: int
    question: str
    answer: str
    feedback: EvaluationFeedback


@dataclass
class QuizSession:
    """Mutable state for one run of ``QUIZ_LENGTH`` questions.

    The session only records what the content service produced; it never
    generates or grades anything itself.
    """

    length: int = QUIZ_LENGTH
    questions_asked: list[str] = field(default_factory=list)
    current_question: str | None = None
    answer: str | None = None
    feedback: EvaluationFeedback | None = None
    score: int = 0
    results: list[QuestionResult] = field(default_factory=list)

    @property
    def number(self) -> int:
        """1-based index of the current question as shown to the user."""

        return len(self.questions_asked)

    @property
    def is_complete(self) -> bool:
        return len(self.questions_asked) >= self.length

    @property
    def awaiting_answer(self) -> bool:
        return self.current_question is not None and self.feedback is None

    def record_question(self, question: str) -> None:
        if self.is_complete:
            raise QuizError(
                f"Quiz already asked {self.length} questions."
            )
        if self.awaiting_answer:
            raise QuizError("Current question has not been answered yet.")
        self.questions_asked.append(question)
        self.current_question = question
        self.answer = None
        self.feedback = None

    def record_feedback(self, answer: str, feedback: EvaluationFeedback) -> None:
        if not self.awaiting_answer:
            raise QuizError("No question is waiting for an answer.")
        self.answer = answer
        self.feedback = feedback
        if feedback.is_correct:
            self.score += 1
        self.results.append(
            QuestionResult(
                number=self.number,
                question=self.current_question or "",
                answer=answer,
                feedback=feedback,
            )
        )
