"""Wire configuration, logging, history, and the content service together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .config import BuddyConfig, load_config
from .core import configure_logger, ensure_workspace
from .core.workspace import WorkspaceLayout
from .history import HistoryStore
from .machine import StudyMachine
from .service import ContentService, OpenAIContentService

__all__ = ["LOG_FILENAME", "Runtime", "history_path", "prepare_runtime"]


LOG_FILENAME = "study_buddy.log"


@dataclass(frozen=True)
class Runtime:
    config: BuddyConfig
    layout: WorkspaceLayout
    logger: logging.Logger
    log_path: Path
    machine: StudyMachine


def history_path(config: BuddyConfig, layout: WorkspaceLayout) -> Path:
    return layout.path_for("history") / config.history.filename


def prepare_runtime(
    *,
    config_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    service: Optional[ContentService] = None,
) -> Runtime:
    """Load config, configure logging, and build a ready state machine.

    Raises ``ConfigError`` or ``WorkspaceError`` when the environment
    cannot be prepared; the content service is not contacted here.
    """

    config = load_config(explicit_path=config_path, env=env)
    layout = ensure_workspace(env=env)
    logger, log_path = configure_logger(
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose,
        filename=LOG_FILENAME,
    )
    history = HistoryStore(history_path(config, layout))
    machine = StudyMachine(
        service or OpenAIContentService(config.openai),
        history,
        preview_limit=config.history.preview_limit,
    )
    logger.info(
        "runtime prepared",
        extra={
            "config": config.source,
            "workspace": layout.home,
            "history_entries": len(history),
        },
    )
    return Runtime(
        config=config,
        layout=layout,
        logger=logger,
        log_path=log_path,
        machine=machine,
    )
