"""Textual front end for the study state machine.

Machine actions run in thread workers so network calls never block the
event loop; the machine's listener hops back onto the app thread to
rebuild the stage.
"""

from __future__ import annotations

from functools import partial
from typing import Callable, List, Optional, Sequence

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.widget import Widget
from textual.widgets import Button, Footer, Header, Input, Markdown, Static
from textual.worker import Worker, WorkerState

from .core.logging import get_logger
from .machine import StudyMachine, TransitionError
from .models import Evaluation, HistoryItem, PanelKind, source_lines
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

__all__ = [
    "BuddyApp",
    "DARK_THEME",
    "LIGHT_THEME",
    "screen_title",
    "screen_buttons",
    "resolve_button",
    "feedback_markup",
    "theme_name",
]


logger = get_logger(__name__)

DARK_THEME = "textual-dark"
LIGHT_THEME = "textual-light"

Action = Callable[[], object]


def theme_name(dark: bool) -> str:
    return DARK_THEME if dark else LIGHT_THEME


def screen_title(screen: Screen) -> str:
    if isinstance(screen, HomeScreen):
        return "What do you want to learn today?"
    if isinstance(screen, LoadingScreen):
        return screen.message
    if isinstance(screen, StudyScreen):
        return screen.topic
    if isinstance(screen, (QuestionScreen, FeedbackScreen)):
        return (
            f"Question {screen.number} of {screen.total}"
            f"  |  Score: {screen.score}"
        )
    if isinstance(screen, CompleteScreen):
        return "Quiz Complete!"
    if isinstance(screen, HistoryScreen):
        return "Study History"
    return "An Error Occurred"


def _history_buttons(items: Sequence[HistoryItem]) -> List[tuple[str, str]]:
    return [(f"open-{idx}", item.topic) for idx, item in enumerate(items)]


def screen_buttons(screen: Screen) -> List[tuple[str, str]]:
    """Return ``(button_id, label)`` pairs offered on ``screen``."""

    if isinstance(screen, HomeScreen):
        buttons = [("submit-topic", "Generate Study Guide")]
        buttons.extend(_history_buttons(screen.recent))
        if screen.has_more_history:
            buttons.append(("history", "View All"))
        return buttons
    if isinstance(screen, StudyScreen):
        kind = screen.panel.kind if screen.panel is not None else None
        return [
            ("quiz", f"Start Quiz ({screen.quiz_length} Questions)"),
            (
                "summary",
                "Hide Summary" if kind is PanelKind.SUMMARY else "Summarize",
            ),
            (
                "key-points",
                "Hide Key Points"
                if kind is PanelKind.KEY_POINTS
                else "Key Points",
            ),
            ("history", "History"),
            ("home", "New Topic"),
        ]
    if isinstance(screen, QuestionScreen):
        return [("submit-answer", "Submit Answer"), ("home", "Start Over")]
    if isinstance(screen, FeedbackScreen):
        label = "Finish Quiz" if screen.is_last else "Next Question"
        return [("next", label)]
    if isinstance(screen, CompleteScreen):
        return [("retry", "Try Again"), ("home", "Study a New Topic")]
    if isinstance(screen, HistoryScreen):
        return _history_buttons(screen.items) + [("home", "Back")]
    if isinstance(screen, ErrorScreen):
        return [("home", "Back to Home")]
    return []


def resolve_button(
    machine: StudyMachine, screen: Screen, button_id: str
) -> Optional[Action]:
    """Map a pressed button to the machine trigger it stands for.

    Input-backed buttons (``submit-topic``/``submit-answer``) are handled by
    the app because they need the field's value.
    """

    if button_id.startswith("open-"):
        items: Sequence[HistoryItem] = ()
        if isinstance(screen, HomeScreen):
            items = screen.recent
        elif isinstance(screen, HistoryScreen):
            items = screen.items
        try:
            item = items[int(button_id[5:])]
        except (ValueError, IndexError):
            return None
        return partial(machine.select_history, item.topic)
    if button_id == "home":
        if isinstance(screen, HistoryScreen):
            return machine.close_history
        return machine.reset
    actions = {
        "quiz": machine.start_quiz,
        "retry": machine.start_quiz,
        "summary": machine.toggle_summary,
        "key-points": machine.toggle_key_points,
        "history": machine.view_history,
        "next": machine.next_question,
    }
    return actions.get(button_id)


def feedback_markup(screen: FeedbackScreen) -> str:
    style = {
        Evaluation.CORRECT: "green",
        Evaluation.PARTIALLY_CORRECT: "yellow",
    }.get(screen.feedback.category, "red")
    return f"[b {style}]{escape(screen.feedback.evaluation)}[/]"


class BuddyApp(App):
    TITLE = "Study Buddy"
    CSS = """
#stage { padding: 1 2; }
#title { text-style: bold; color: $accent; margin-bottom: 1; }
#actions { height: auto; margin-top: 1; }
#actions Button { margin-right: 1; }
#history-list Button { width: 100%; margin-bottom: 1; }
.panel { border: round $secondary; padding: 0 1; margin-top: 1; }
.error { border: round $error; padding: 0 1; }
.muted { color: $text-muted; }
"""
    BINDINGS = [
        ("f2", "toggle_theme", "Theme"),
        ("escape", "home", "Home"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, machine: StudyMachine, *, dark: bool = True) -> None:
        super().__init__()
        self._machine = machine
        self._dark = dark
        self._screen: Screen = machine.screen()

    @property
    def dark_mode(self) -> bool:
        return self._dark

    def compose(self) -> ComposeResult:
        yield Header()
        yield VerticalScroll(id="stage")
        yield Footer()

    async def on_mount(self) -> None:
        self._apply_theme()
        self._machine.set_listener(self._on_machine_change)
        await self._update_stage()

    def on_unmount(self) -> None:
        self._machine.set_listener(None)

    # Machine plumbing ------------------------------------------------------

    def _on_machine_change(self, machine: StudyMachine) -> None:
        self.call_from_thread(self._update_stage)

    def _dispatch(self, action: Action) -> None:
        self.run_worker(
            partial(self._run_action, action),
            thread=True,
            exit_on_error=False,
            group="machine",
        )

    def _run_action(self, action: Action) -> None:
        try:
            action()
        except (TransitionError, ValueError) as exc:
            self.call_from_thread(self.notify, str(exc), severity="warning")

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.state is WorkerState.ERROR:
            logger.error(
                "machine action crashed",
                exc_info=event.worker.error,
            )
            self.notify(str(event.worker.error), severity="error")

    # Rendering -------------------------------------------------------------

    async def _update_stage(self) -> None:
        self._screen = self._machine.screen()
        try:
            stage = self.query_one("#stage", VerticalScroll)
        except Exception:
            return
        await stage.remove_children()
        await stage.mount_all(self._build_widgets(self._screen))
        stage.scroll_home(animate=False)
        for field in stage.query(Input):
            field.focus()
            break

    def _build_widgets(self, screen: Screen) -> List[Widget]:
        title = Static(Text(screen_title(screen)), id="title")
        widgets: List[Widget] = [title]
        if isinstance(screen, HomeScreen):
            widgets.append(
                Input(
                    placeholder=(
                        "e.g., 'The French Revolution' or "
                        "'How do black holes work?'"
                    ),
                    id="topic-input",
                )
            )
            if screen.recent:
                widgets.append(Static("Recent Topics", classes="muted"))
        elif isinstance(screen, LoadingScreen):
            widgets.append(Static("Please wait...", classes="muted"))
        elif isinstance(screen, StudyScreen):
            widgets.append(Markdown(screen.guide.text))
            if screen.panel is not None:
                widgets.append(
                    Static(f"[b]{screen.panel.kind.title}[/b]")
                )
                widgets.append(Markdown(screen.panel.text, classes="panel"))
            if screen.guide.sources:
                widgets.append(Static("[b]Sources[/b]"))
                widgets.append(
                    Static(
                        Text("\n".join(source_lines(screen.guide.sources))),
                        classes="muted",
                    )
                )
        elif isinstance(screen, QuestionScreen):
            widgets.append(Static(Text(screen.question), classes="panel"))
            widgets.append(
                Input(placeholder="Type your answer here...", id="answer-input")
            )
        elif isinstance(screen, FeedbackScreen):
            widgets.append(Static(Text(screen.question), classes="panel"))
            widgets.append(
                Static(Text(f'Your answer: "{screen.answer}"'), classes="muted")
            )
            widgets.append(Static(feedback_markup(screen)))
            widgets.append(Static(Text(screen.feedback.explanation)))
        elif isinstance(screen, CompleteScreen):
            widgets.append(
                Static(f"Your final score is {screen.score} / {screen.total}")
            )
            for result in screen.results:
                widgets.append(
                    Static(
                        Text(
                            f"{result.number}. {result.question}\n"
                            f"   {result.answer} -> {result.feedback.evaluation}"
                        ),
                        classes="muted",
                    )
                )
        elif isinstance(screen, HistoryScreen):
            if not screen.items:
                widgets.append(Static("No history yet.", classes="muted"))
        elif isinstance(screen, ErrorScreen):
            widgets.append(Static(Text(screen.message), classes="error"))

        history_ids = []
        action_buttons = []
        for button_id, label in screen_buttons(screen):
            button = Button(label, id=button_id)
            if button_id.startswith("open-"):
                history_ids.append(button)
            else:
                action_buttons.append(button)
        if history_ids:
            widgets.append(VerticalScroll(*history_ids, id="history-list"))
        if action_buttons:
            widgets.append(Horizontal(*action_buttons, id="actions"))
        return widgets

    # Events ----------------------------------------------------------------

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit_input(event.input.id or "", event.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid == "submit-topic":
            self._submit_input("topic-input", self._input_value("#topic-input"))
            return
        if bid == "submit-answer":
            self._submit_input(
                "answer-input", self._input_value("#answer-input")
            )
            return
        action = resolve_button(self._machine, self._screen, bid)
        if action is not None:
            self._dispatch(action)

    def _input_value(self, selector: str) -> str:
        try:
            return self.query_one(selector, Input).value
        except Exception:
            return ""

    def _submit_input(self, input_id: str, value: str) -> None:
        if not value.strip():
            self.notify("Please enter some text first.", severity="warning")
            return
        if input_id == "topic-input":
            self._dispatch(partial(self._machine.submit_topic, value))
        elif input_id == "answer-input":
            self._dispatch(partial(self._machine.submit_answer, value))

    # Actions ---------------------------------------------------------------

    def action_toggle_theme(self) -> None:
        self._dark = not self._dark
        self._apply_theme()

    def action_home(self) -> None:
        action = resolve_button(self._machine, self._screen, "home")
        if action is not None and not isinstance(self._screen, LoadingScreen):
            self._dispatch(action)

    def _apply_theme(self) -> None:
        self.theme = theme_name(self._dark)
