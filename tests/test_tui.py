from __future__ import annotations

from study_buddy.machine import AppState
from study_buddy.models import (
    AuxPanel,
    EvaluationFeedback,
    HistoryItem,
    PanelKind,
    StudyGuide,
)
from study_buddy.screens import (
    CompleteScreen,
    ErrorScreen,
    FeedbackScreen,
    HistoryScreen,
    HomeScreen,
    LoadingScreen,
    QuestionScreen,
    StudyScreen,
)
from study_buddy.tui import (
    DARK_THEME,
    LIGHT_THEME,
    BuddyApp,
    feedback_markup,
    resolve_button,
    screen_buttons,
    screen_title,
    theme_name,
)


def _ids(screen):
    return [button_id for button_id, _ in screen_buttons(screen)]


def _study_screen(panel=None):
    return StudyScreen(
        topic="Photosynthesis",
        guide=StudyGuide(text="# Guide"),
        panel=panel,
        quiz_length=5,
    )


def test_home_buttons_offer_view_all_only_with_more_history():
    items = (HistoryItem("A", "g"), HistoryItem("B", "g"))
    assert _ids(HomeScreen(recent=items, has_more_history=False)) == [
        "submit-topic",
        "open-0",
        "open-1",
    ]
    assert _ids(HomeScreen(recent=items, has_more_history=True))[-1] == (
        "history"
    )


def test_study_buttons_reflect_open_panel():
    labels = dict(screen_buttons(_study_screen()))
    assert labels["quiz"] == "Start Quiz (5 Questions)"
    assert labels["summary"] == "Summarize"
    assert labels["key-points"] == "Key Points"

    panel = AuxPanel(PanelKind.KEY_POINTS, "- a")
    labels = dict(screen_buttons(_study_screen(panel)))
    assert labels["key-points"] == "Hide Key Points"
    assert labels["summary"] == "Summarize"


def test_feedback_button_finishes_on_last_question():
    feedback = EvaluationFeedback("Correct", "ok")
    middle = FeedbackScreen(2, 5, 1, "Q", "A", feedback)
    last = FeedbackScreen(5, 5, 3, "Q", "A", feedback)
    assert dict(screen_buttons(middle))["next"] == "Next Question"
    assert dict(screen_buttons(last))["next"] == "Finish Quiz"


def test_titles():
    assert screen_title(LoadingScreen("Evaluating your answer...")) == (
        "Evaluating your answer..."
    )
    assert screen_title(QuestionScreen(3, 5, 2, "Q")) == (
        "Question 3 of 5  |  Score: 2"
    )
    assert screen_title(CompleteScreen("T", 3, 5, ())) == "Quiz Complete!"
    assert screen_title(ErrorScreen("x")) == "An Error Occurred"
    assert screen_title(_study_screen()) == "Photosynthesis"


def test_loading_screen_has_no_buttons():
    assert screen_buttons(LoadingScreen("...")) == []


def test_feedback_markup_escapes_labels():
    screen = FeedbackScreen(
        1, 5, 0, "Q", "A", EvaluationFeedback("[odd]", "x")
    )
    assert feedback_markup(screen) == "[b red]\\[odd][/]"
    correct = FeedbackScreen(1, 5, 1, "Q", "A", EvaluationFeedback("Correct", ""))
    assert feedback_markup(correct).startswith("[b green]")


def test_resolve_button_maps_to_machine_triggers(machine, service, history):
    history.add("Saved", "guide")
    home = machine.screen()

    resolve_button(machine, home, "open-0")()
    assert machine.state is AppState.STUDYING
    assert machine.topic == "Saved"

    resolve_button(machine, machine.screen(), "key-points")()
    assert machine.panel is not None

    resolve_button(machine, machine.screen(), "history")()
    assert machine.state is AppState.SHOWING_HISTORY

    resolve_button(machine, machine.screen(), "home")()
    assert machine.state is AppState.INITIAL
    assert service.count("key_points") == 1


def test_resolve_button_unknown_ids(machine):
    home = machine.screen()
    assert resolve_button(machine, home, "open-9") is None
    assert resolve_button(machine, home, "open-x") is None
    assert resolve_button(machine, home, "mystery") is None


def test_history_screen_back_closes_history(machine):
    machine.view_history()
    screen = machine.screen()
    assert isinstance(screen, HistoryScreen)
    assert _ids(screen) == ["home"]
    resolve_button(machine, screen, "home")()
    assert machine.state is AppState.INITIAL


def test_theme_name():
    assert theme_name(True) == DARK_THEME == "textual-dark"
    assert theme_name(False) == LIGHT_THEME == "textual-light"


def test_app_keeps_dark_preference(machine):
    assert BuddyApp(machine).dark_mode
    assert not BuddyApp(machine, dark=False).dark_mode


def test_error_screen_button_goes_home(service, machine):
    service.queue("guide", RuntimeError("boom"))
    machine.submit_topic("Topic")
    screen = machine.screen()
    assert isinstance(screen, ErrorScreen)

    assert screen_buttons(screen) == [("home", "Back to Home")]
    resolve_button(machine, screen, "home")()
    assert machine.state is AppState.INITIAL
