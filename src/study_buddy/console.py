"""Rich-powered prompt loop over the study state machine.

Plain text is treated as input for the current screen (a topic or an
answer). Commands start with ``:`` so they never collide with free text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .machine import StudyMachine, TransitionError
from .models import Evaluation
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
    "ConsoleCommand",
    "parse_console_command",
    "run_console_session",
    "render_screen",
]


InputProvider = Callable[[], str]

CommandType = Literal[
    "text",
    "quit",
    "back",
    "history",
    "open",
    "quiz",
    "summary",
    "keys",
    "next",
    "retry",
]

_ALIASES: dict[str, CommandType] = {
    "q": "quit",
    "quit": "quit",
    "exit": "quit",
    "b": "back",
    "back": "back",
    "home": "back",
    "h": "history",
    "history": "history",
    "o": "open",
    "open": "open",
    "z": "quiz",
    "quiz": "quiz",
    "s": "summary",
    "summary": "summary",
    "k": "keys",
    "keys": "keys",
    "n": "next",
    "next": "next",
    "r": "retry",
    "retry": "retry",
}

EVALUATION_STYLES = {
    Evaluation.CORRECT: "green",
    Evaluation.PARTIALLY_CORRECT: "yellow",
    Evaluation.INCORRECT: "red",
    Evaluation.UNKNOWN: "red",
}


@dataclass(frozen=True)
class ConsoleCommand:
    """Normalized user input parsed from the prompt."""

    type: CommandType
    argument: str | None = None


def parse_console_command(raw: str | None) -> ConsoleCommand | None:
    """Parse raw input; ``None`` for blank or unrecognized commands."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if not text.startswith(":"):
        return ConsoleCommand("text", text)
    name, _, rest = text[1:].partition(" ")
    command = _ALIASES.get(name.lower())
    if command is None:
        return None
    return ConsoleCommand(command, rest.strip() or None)


def run_console_session(
    machine: StudyMachine,
    console: Console,
    input_provider: InputProvider,
) -> None:
    """Render screens and dispatch commands until the user quits."""

    console.print(
        Panel(
            "Enter a topic to get a study guide and a "
            "five-question quiz. Type :q to quit.",
            title="Study Buddy",
            border_style="cyan",
        )
    )
    while True:
        screen = machine.screen()
        render_screen(console, screen)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session ended.[/]")
            return
        command = parse_console_command(raw)
        if command is None and isinstance(screen, FeedbackScreen):
            if raw is not None and not raw.strip():
                command = ConsoleCommand("next")
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("Goodbye!")
            return
        try:
            handled = _apply_command(machine, screen, command)
        except (TransitionError, ValueError) as exc:
            console.print(Text(str(exc), style="red"))
            continue
        if not handled:
            console.print("[red]That command is not available here.[/]")


def _apply_command(
    machine: StudyMachine, screen: Screen, command: ConsoleCommand
) -> bool:
    kind = command.type
    if kind == "back":
        if isinstance(screen, HistoryScreen):
            machine.close_history()
        else:
            machine.reset()
        return True
    if isinstance(screen, ErrorScreen):
        return False
    if isinstance(screen, HomeScreen):
        if kind == "text":
            machine.submit_topic(command.argument or "")
            return True
        if kind == "history":
            machine.view_history()
            return True
        if kind == "open":
            _open_from(machine, screen.recent, command.argument)
            return True
        return False
    if isinstance(screen, HistoryScreen):
        if kind in ("open", "text"):
            _open_from(machine, screen.items, command.argument)
            return True
        return False
    if isinstance(screen, StudyScreen):
        actions = {
            "quiz": machine.start_quiz,
            "summary": machine.toggle_summary,
            "keys": machine.toggle_key_points,
            "history": machine.view_history,
        }
        action = actions.get(kind)
        if action is None:
            return False
        action()
        return True
    if isinstance(screen, QuestionScreen):
        if kind == "text":
            machine.submit_answer(command.argument or "")
            return True
        return False
    if isinstance(screen, FeedbackScreen):
        if kind in ("next", "text"):
            machine.next_question()
            return True
        return False
    if isinstance(screen, CompleteScreen):
        if kind == "retry":
            machine.start_quiz()
            return True
        return False
    return False


def _open_from(machine: StudyMachine, items, argument: str | None) -> None:
    if not argument:
        raise ValueError("Give a history number or topic to open.")
    if argument.isdigit():
        index = int(argument) - 1
        if not 0 <= index < len(items):
            raise ValueError(f"No history entry numbered {argument}.")
        machine.select_history(items[index].topic)
        return
    machine.select_history(argument)


def render_screen(console: Console, screen: Screen) -> None:
    """Print ``screen`` and the commands available on it."""

    console.print()
    if isinstance(screen, HomeScreen):
        _render_home(console, screen)
    elif isinstance(screen, LoadingScreen):
        console.print(Text(screen.message, style="dim italic"))
    elif isinstance(screen, StudyScreen):
        _render_study(console, screen)
    elif isinstance(screen, QuestionScreen):
        _render_question_header(console, screen.number, screen.total, screen.score)
        console.print(Panel(Text(screen.question), border_style="cyan"))
        _hint(console, "Type your answer, or :b to start over.")
    elif isinstance(screen, FeedbackScreen):
        _render_feedback(console, screen)
    elif isinstance(screen, CompleteScreen):
        _render_complete(console, screen)
    elif isinstance(screen, HistoryScreen):
        console.rule(Text("Study History", style="bold magenta"))
        _history_table(console, screen.items)
        _hint(console, "Enter a number or topic to open it, :b to go back.")
    elif isinstance(screen, ErrorScreen):
        console.print(
            Panel(
                Text(screen.message),
                title="An Error Occurred",
                border_style="red",
            )
        )
        _hint(console, ":b to go back home.")


def _render_home(console: Console, screen: HomeScreen) -> None:
    console.rule(Text("What do you want to learn?", style="bold cyan"))
    if screen.recent:
        _history_table(console, screen.recent)
        hint = "Type a topic, :o N to reopen one"
        if screen.has_more_history:
            hint += ", :h for all history"
        _hint(console, hint + ".")
    else:
        _hint(
            console,
            "e.g. 'The French Revolution' or 'How do black holes work?'",
        )


def _render_study(console: Console, screen: StudyScreen) -> None:
    console.rule(Text(screen.topic, style="bold cyan"))
    console.print(Markdown(screen.guide.text))
    if screen.panel is not None:
        console.print(
            Panel(
                Markdown(screen.panel.text),
                title=screen.panel.kind.title,
                border_style="magenta",
            )
        )
    if screen.guide.sources:
        sources = Table(title="Sources", box=box.SIMPLE, expand=True)
        sources.add_column("#", justify="right")
        sources.add_column("Title")
        sources.add_column("Link", overflow="fold")
        for idx, source in enumerate(screen.guide.sources, start=1):
            sources.add_row(str(idx), Text(source.title), Text(source.uri))
        console.print(sources)
    summary_label = "hide summary" if _panel_is(screen, "summary") else "summary"
    keys_label = "hide key points" if _panel_is(screen, "key_points") else "key points"
    _hint(
        console,
        f":z quiz ({screen.quiz_length} questions), :s {summary_label}, "
        f":k {keys_label}, :h history, :b new topic",
    )


def _panel_is(screen: StudyScreen, kind: str) -> bool:
    return screen.panel is not None and screen.panel.kind.value == kind


def _render_question_header(
    console: Console, number: int, total: int, score: int
) -> None:
    console.rule(
        Text.assemble(
            (f"Question {number}", "bold cyan"),
            (f" / {total}", "dim"),
            (f" | Score: {score}", "dim"),
        )
    )


def _render_feedback(console: Console, screen: FeedbackScreen) -> None:
    _render_question_header(console, screen.number, screen.total, screen.score)
    console.print(Panel(Text(screen.question), border_style="cyan"))
    console.print(Text(f'Your answer: "{screen.answer}"', style="italic"))
    style = EVALUATION_STYLES[screen.feedback.category]
    console.print(
        Panel(
            Text(screen.feedback.explanation),
            title=Text(screen.feedback.evaluation),
            border_style=style,
        )
    )
    action = "to finish the quiz" if screen.is_last else "for the next question"
    _hint(console, f"Press Enter or :n {action}.")


def _render_complete(console: Console, screen: CompleteScreen) -> None:
    console.rule(Text("Quiz Complete!", style="bold magenta"))
    console.print(
        Text(f"Your final score is {screen.score} / {screen.total}", style="bold")
    )
    if screen.results:
        table = Table(title="Responses", box=box.SIMPLE, expand=True)
        table.add_column("#", justify="right")
        table.add_column("Question", overflow="fold")
        table.add_column("Your answer", overflow="fold")
        table.add_column("Result")
        for result in screen.results:
            style = EVALUATION_STYLES[result.feedback.category]
            table.add_row(
                str(result.number),
                Text(result.question),
                Text(result.answer),
                Text(result.feedback.evaluation, style=style),
            )
        console.print(table)
    _hint(console, ":r try again, :b study a new topic")


def _history_table(console: Console, items) -> None:
    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Topic")
    for idx, item in enumerate(items, start=1):
        table.add_row(str(idx), Text(item.topic))
    console.print(table)


def _hint(console: Console, text: str) -> None:
    console.print(Text(text, style="dim"))
