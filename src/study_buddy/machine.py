"""Application state machine driving a study session.

``StudyMachine`` owns every piece of mutable session state. Views call its
trigger methods and render whatever :meth:`StudyMachine.screen` returns.
Each trigger that needs the content service flips into a working state
before the request starts, so a second trigger cannot start another request
until the first one resolves.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional, TypeVar

from .core.logging import get_logger
from .history import HistoryStore
from .models import QUIZ_LENGTH, AuxPanel, PanelKind, StudyGuide
from .quiz import QuizSession
from .screens import (
    CompleteScreen,
    ErrorScreen,
    FeedbackScreen,
    HistoryScreen,
    HomeScreen,
    LoadingScreen,
    QuestionScreen,
    Screen,
    StudyScreen,
)
from .service import ContentService, ServiceError

__all__ = [
    "AppState",
    "TransitionError",
    "StudyMachine",
    "LOADING_MESSAGES",
]


logger = get_logger(__name__)

T = TypeVar("T")
Listener = Callable[["StudyMachine"], None]


class AppState(Enum):
    INITIAL = "initial"
    GENERATING_GUIDE = "generating_guide"
    STUDYING = "studying"
    GENERATING_KEY_POINTS = "generating_key_points"
    GENERATING_SUMMARY = "generating_summary"
    ASKING_QUESTION = "asking_question"
    EVALUATING_ANSWER = "evaluating_answer"
    SHOWING_FEEDBACK = "showing_feedback"
    QUIZ_COMPLETE = "quiz_complete"
    SHOWING_HISTORY = "showing_history"
    ERROR = "error"


LOADING_MESSAGES = {
    AppState.GENERATING_GUIDE: "Generating your personalized study guide...",
    AppState.GENERATING_KEY_POINTS: "Extracting key points...",
    AppState.GENERATING_SUMMARY: "Creating a summary...",
    AppState.ASKING_QUESTION: "Coming up with a good question...",
    AppState.EVALUATING_ANSWER: "Evaluating your answer...",
}

_PANEL_STATES = {
    PanelKind.SUMMARY: AppState.GENERATING_SUMMARY,
    PanelKind.KEY_POINTS: AppState.GENERATING_KEY_POINTS,
}


class TransitionError(RuntimeError):
    """Raised when a trigger is not allowed in the current state."""


class _Failed:
    """Marker returned by ``_call`` after a service failure."""


_FAILED = _Failed()


class StudyMachine:
    """Single owner of topic, guide, quiz, and error state."""

    def __init__(
        self,
        service: ContentService,
        history: HistoryStore,
        *,
        listener: Optional[Listener] = None,
        preview_limit: int = 5,
    ) -> None:
        self._service = service
        self._history = history
        self._listener = listener
        self._preview_limit = preview_limit
        self._state = AppState.INITIAL
        self._busy = False
        self._error: str | None = None
        self._topic = ""
        self._guide: StudyGuide | None = None
        self._panel: AuxPanel | None = None
        self._quiz: QuizSession | None = None

    # Read-only views -------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def guide(self) -> StudyGuide | None:
        return self._guide

    @property
    def panel(self) -> AuxPanel | None:
        return self._panel

    @property
    def quiz(self) -> QuizSession | None:
        return self._quiz

    @property
    def history(self) -> HistoryStore:
        return self._history

    def set_listener(self, listener: Optional[Listener]) -> None:
        self._listener = listener

    # Triggers --------------------------------------------------------------

    def submit_topic(self, topic: str) -> bool:
        """Generate a guide for ``topic``; return whether it succeeded."""

        self._require("submit a topic", AppState.INITIAL)
        text = topic.strip()
        if not text:
            raise ValueError("Topic cannot be empty.")
        self._clear_session()
        self._topic = text
        guide = self._call(
            AppState.GENERATING_GUIDE,
            lambda: self._service.generate_guide(text),
        )
        if guide is _FAILED:
            return False
        self._guide = guide
        if self._history.add(text, guide.text, guide.sources):
            logger.info("topic added to history", extra={"topic": text})
        self._enter(AppState.STUDYING)
        return True

    def start_quiz(self) -> None:
        self._require(
            "start a quiz",
            AppState.STUDYING,
            AppState.SHOWING_FEEDBACK,
            AppState.QUIZ_COMPLETE,
        )
        self._quiz = QuizSession()
        self._request_question()

    def next_question(self) -> None:
        self._require("advance the quiz", AppState.SHOWING_FEEDBACK)
        self._request_question()

    def submit_answer(self, answer: str) -> bool:
        """Grade ``answer`` for the current question."""

        self._require("submit an answer", AppState.ASKING_QUESTION)
        quiz = self._quiz
        if quiz is None or not quiz.awaiting_answer:
            raise TransitionError("No question is waiting for an answer.")
        text = answer.strip()
        if not text:
            raise ValueError("Answer cannot be empty.")
        guide = self._require_guide()
        question = quiz.current_question or ""
        feedback = self._call(
            AppState.EVALUATING_ANSWER,
            lambda: self._service.evaluate_answer(guide.text, question, text),
        )
        if feedback is _FAILED:
            return False
        quiz.record_feedback(text, feedback)
        logger.info(
            "answer evaluated",
            extra={
                "question_number": quiz.number,
                "evaluation": feedback.evaluation,
                "score": quiz.score,
            },
        )
        self._enter(AppState.SHOWING_FEEDBACK)
        return True

    def toggle_summary(self) -> None:
        guide = self._require_guide_for("toggle the summary")
        self._toggle_panel(
            PanelKind.SUMMARY, lambda: self._service.summarize(guide.text)
        )

    def toggle_key_points(self) -> None:
        guide = self._require_guide_for("toggle key points")
        self._toggle_panel(
            PanelKind.KEY_POINTS,
            lambda: self._service.extract_key_points(guide.text),
        )

    def select_history(self, topic: str) -> None:
        """Re-open a stored topic without calling the content service."""

        self._require(
            "open a history entry",
            AppState.INITIAL,
            AppState.SHOWING_HISTORY,
        )
        item = self._history.select(topic)
        if item is None:
            raise ValueError(f"No history entry for '{topic}'.")
        self._clear_session()
        self._topic = item.topic
        self._guide = item.study_guide
        self._enter(AppState.STUDYING)

    def view_history(self) -> None:
        self._require(
            "view history", AppState.INITIAL, AppState.STUDYING
        )
        self._enter(AppState.SHOWING_HISTORY)

    def close_history(self) -> None:
        self._require("leave history", AppState.SHOWING_HISTORY)
        self._clear_session()
        self._enter(AppState.INITIAL)

    def reset(self) -> None:
        """Return to the topic prompt, dropping everything but history."""

        if self._busy:
            raise TransitionError(
                "Cannot start over while a request is in progress."
            )
        self._clear_session()
        self._enter(AppState.INITIAL)

    # Rendering -------------------------------------------------------------

    def screen(self) -> Screen:
        """Return the snapshot the view layer should render right now."""

        state = self._state
        if self._busy:
            return LoadingScreen(LOADING_MESSAGES.get(state, "Thinking..."))
        if state is AppState.INITIAL:
            recent = self._history.recent(self._preview_limit)
            return HomeScreen(
                recent=recent,
                has_more_history=len(self._history) > len(recent),
            )
        if state is AppState.SHOWING_HISTORY:
            return HistoryScreen(items=self._history.list())
        if state is AppState.ERROR:
            return ErrorScreen(self._error or "An unknown error occurred.")
        if state is AppState.STUDYING:
            return StudyScreen(
                topic=self._topic,
                guide=self._require_guide(),
                panel=self._panel,
                quiz_length=QUIZ_LENGTH,
            )
        quiz = self._quiz
        if quiz is None:
            raise TransitionError(f"No quiz data in state {state.value}.")
        if state is AppState.ASKING_QUESTION:
            return QuestionScreen(
                number=quiz.number,
                total=quiz.length,
                score=quiz.score,
                question=quiz.current_question or "",
            )
        if state is AppState.SHOWING_FEEDBACK and quiz.feedback is not None:
            return FeedbackScreen(
                number=quiz.number,
                total=quiz.length,
                score=quiz.score,
                question=quiz.current_question or "",
                answer=quiz.answer or "",
                feedback=quiz.feedback,
            )
        if state is AppState.QUIZ_COMPLETE:
            return CompleteScreen(
                topic=self._topic,
                score=quiz.score,
                total=quiz.length,
                results=tuple(quiz.results),
            )
        raise TransitionError(f"Nothing to render for state {state.value}.")

    # Internals -------------------------------------------------------------

    def _request_question(self) -> None:
        quiz = self._quiz
        if quiz is None:
            raise TransitionError("No quiz in progress.")
        if quiz.is_complete:
            logger.info(
                "quiz complete",
                extra={"topic": self._topic, "score": quiz.score},
            )
            self._enter(AppState.QUIZ_COMPLETE)
            return
        guide = self._require_guide()
        asked = tuple(quiz.questions_asked)
        question = self._call(
            AppState.ASKING_QUESTION,
            lambda: self._service.generate_question(guide.text, asked),
        )
        if question is _FAILED:
            return
        quiz.record_question(question)
        self._enter(AppState.ASKING_QUESTION)

    def _toggle_panel(self, kind: PanelKind, fetch: Callable[[], str]) -> None:
        if self._panel is not None and self._panel.kind is kind:
            self._panel = None
            self._enter(AppState.STUDYING)
            return
        self._panel = None
        text = self._call(_PANEL_STATES[kind], fetch)
        if text is _FAILED:
            return
        self._panel = AuxPanel(kind=kind, text=text)
        self._enter(AppState.STUDYING)

    def _call(self, working: AppState, fetch: Callable[[], T]) -> T | _Failed:
        self._busy = True
        self._enter(working)
        try:
            result = fetch()
        except ServiceError as exc:
            self._busy = False
            logger.warning(
                "content service failure",
                extra={"state": self._state.value, "reason": str(exc)},
            )
            self._fail(str(exc))
            return _FAILED
        except Exception as exc:
            self._busy = False
            logger.exception(
                "unexpected content service error",
                extra={"state": self._state.value},
            )
            self._fail(f"An unexpected error occurred: {exc}")
            return _FAILED
        finally:
            self._busy = False
        return result

    def _fail(self, message: str) -> None:
        self._error = message or "An unknown error occurred."
        self._quiz = None
        self._enter(AppState.ERROR)

    def _require(self, action: str, *allowed: AppState) -> None:
        if self._busy:
            raise TransitionError(
                f"Cannot {action} while a request is in progress."
            )
        if self._state not in allowed:
            raise TransitionError(
                f"Cannot {action} from state '{self._state.value}'."
            )

    def _require_guide(self) -> StudyGuide:
        if self._guide is None:
            raise TransitionError("No study guide loaded.")
        return self._guide

    def _require_guide_for(self, action: str) -> StudyGuide:
        self._require(action, AppState.STUDYING)
        return self._require_guide()

    def _clear_session(self) -> None:
        self._error = None
        self._topic = ""
        self._guide = None
        self._panel = None
        self._quiz = None

    def _enter(self, state: AppState) -> None:
        previous = self._state
        self._state = state
        logger.debug(
            "state transition",
            extra={"previous": previous.value, "state": state.value},
        )
        if self._listener is not None:
            self._listener(self)
