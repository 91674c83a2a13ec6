from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
for extra in (ROOT, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import FakeOpenAI, ScriptedService  # noqa: E402
from study_buddy.config import CONFIG_PATH_ENV  # noqa: E402
from study_buddy.core import API_KEY_ENV, ROOT_LOGGER, WORKSPACE_ENV  # noqa: E402
from study_buddy.history import HistoryStore  # noqa: E402
from study_buddy.machine import StudyMachine  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[Path]:
    """Point the workspace at a per-test directory and drop credentials."""

    home = tmp_path / "data-home"
    monkeypatch.setenv(WORKSPACE_ENV, str(home))
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    yield home
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True


@pytest.fixture
def data_home(_isolate_environment: Path) -> Path:
    return _isolate_environment


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def service() -> ScriptedService:
    return ScriptedService()


@pytest.fixture
def history(tmp_path: Path) -> HistoryStore:
    return HistoryStore(tmp_path / "history.json")


@pytest.fixture
def machine(service: ScriptedService, history: HistoryStore) -> StudyMachine:
    return StudyMachine(service, history)
