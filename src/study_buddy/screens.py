"""Per-state snapshots handed to the view layer.

Each screen type carries only the data that is meaningful in the matching
machine state, so a view cannot render a stale question or guide.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .models import AuxPanel, EvaluationFeedback, HistoryItem, StudyGuide
from .quiz import QuestionResult

__all__ = [
    "HomeScreen",
    "LoadingScreen",
    "StudyScreen",
    "QuestionScreen",
    "FeedbackScreen",
    "CompleteScreen",
    "HistoryScreen",
    "ErrorScreen",
    "Screen",
]


@dataclass(frozen=True)
class HomeScreen:
    recent: tuple[HistoryItem, ...]
    has_more_history: bool


@dataclass(frozen=True)
class LoadingScreen:
    message: str


@dataclass(frozen=True)
class StudyScreen:
    topic: str
    guide: StudyGuide
    panel: AuxPanel | None
    quiz_length: int


@dataclass(frozen=True)
class QuestionScreen:
    number: int
    total: int
    score: int
    question: str


@dataclass(frozen=True)
class FeedbackScreen:
    number: int
    total: int
    score: int
    question: str
    answer: str
    feedback: EvaluationFeedback

    @property
    def is_last(self) -> bool:
        return self.number >= self.total


@dataclass(frozen=True)
class CompleteScreen:
    topic: str
    score: int
    total: int
    results: tuple[QuestionResult, ...]


@dataclass(frozen=True)
class HistoryScreen:
    items: tuple[HistoryItem, ...]


@dataclass(frozen=True)
class ErrorScreen:
    message: str


Screen = Union[
    HomeScreen,
    LoadingScreen,
    StudyScreen,
    QuestionScreen,
    FeedbackScreen,
    CompleteScreen,
    HistoryScreen,
    ErrorScreen,
]
