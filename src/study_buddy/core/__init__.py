"""Core shared helpers for study-buddy commands."""

from __future__ import annotations

from .ai import API_KEY_ENV, load_client
from .logging import (
    ROOT_LOGGER,
    JsonLogFormatter,
    configure_logger,
    get_logger,
)
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "API_KEY_ENV",
    "load_client",
    "ROOT_LOGGER",
    "JsonLogFormatter",
    "configure_logger",
    "get_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]
