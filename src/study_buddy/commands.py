"""argparse front ends for the ``study-buddy`` subcommands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import config as config_mod
from .bootstrap import history_path, prepare_runtime
from .core import workspace as workspace_mod
from .history import HistoryStore
from .models import source_lines


def _print_error(message: str) -> None:
    sys.stderr.write(f"Error: {message}\n")


def _to_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        help=(
            "Path to buddy.toml (defaults to STUDY_BUDDY_CONFIG or the "
            "workspace config directory)."
        ),
    )


# init ----------------------------------------------------------------------


def _build_init_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-buddy init",
        description=(
            "Bootstrap the Study Buddy workspace and write the default "
            "configuration if it is missing."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Override the workspace root (defaults to STUDY_BUDDY_DATA_HOME "
            "or ~/.study-buddy-data)."
        ),
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output on success.",
    )
    return parser


def _format_created(created, key: str) -> str:
    return "created" if created.get(key, False) else "exists"


def init_main(argv: Sequence[str] | None = None) -> int:
    parser = _build_init_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        _print_error(str(exc))
        return 2

    config_path = layout.path_for("config") / config_mod.CONFIG_FILENAME
    wrote_config = False
    if not config_path.exists():
        config_mod.write_template(config_path)
        wrote_config = True

    if args.quiet:
        return 0

    created = layout.created
    lines = [
        f"Workspace ready at {layout.home} "
        f"({_format_created(created, 'home')})"
    ]
    if layout.directories:
        lines.append("Subdirectories:")
        width = max(len(name) for name in layout.directories)
        for name, directory in layout.items():
            status = _format_created(created, name)
            lines.append(f"  {name.ljust(width)}  {directory} ({status})")
    status = "created" if wrote_config else "exists"
    lines.append(f"Config: {config_path} ({status})")
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


# tui / console -------------------------------------------------------------


def _build_tui_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-buddy tui",
        description="Launch the Study Buddy terminal app.",
    )
    _add_config_option(parser)
    parser.add_argument(
        "--light",
        action="store_true",
        help="Start in light mode regardless of the configured theme.",
    )
    return parser


def tui_main(argv: Sequence[str] | None = None) -> int:
    parser = _build_tui_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        runtime = prepare_runtime(config_path=_to_path(args.config))
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2

    from .tui import BuddyApp

    dark = runtime.config.ui.dark and not args.light
    runtime.logger.info("launching tui", extra={"dark": dark})
    BuddyApp(runtime.machine, dark=dark).run()
    return 0


def _build_console_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-buddy console",
        description="Run Study Buddy as a plain Rich prompt loop.",
    )
    _add_config_option(parser)
    return parser


def console_main(
    argv: Sequence[str] | None = None,
    *,
    console: Console | None = None,
    input_provider: Callable[[], str] | None = None,
) -> int:
    parser = _build_console_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        runtime = prepare_runtime(config_path=_to_path(args.config))
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2

    from .console import run_console_session

    out = console or Console()
    prompt = input_provider or (lambda: out.input("[bold cyan]> [/]"))
    runtime.logger.info("launching console session")
    run_console_session(runtime.machine, out, prompt)
    return 0


# history -------------------------------------------------------------------


def _build_history_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-buddy history",
        description="Inspect previously studied topics.",
    )
    _add_config_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List stored topics.")
    list_parser.add_argument(
        "--limit",
        type=int,
        help="Only show the most recent N topics.",
    )

    show_parser = subparsers.add_parser(
        "show", help="Print the stored study guide for a topic."
    )
    show_parser.add_argument("topic", help="Topic to show (case-insensitive).")
    return parser


def _open_history(config_arg: str | None) -> HistoryStore:
    cfg = config_mod.load_config(explicit_path=_to_path(config_arg))
    layout = workspace_mod.ensure_workspace(create=False)
    return HistoryStore(history_path(cfg, layout))


def history_main(
    argv: Sequence[str] | None = None, *, console: Console | None = None
) -> int:
    parser = _build_history_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    out = console or Console()
    try:
        store = _open_history(args.config)
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2

    if args.command == "list":
        if args.limit is not None and args.limit < 1:
            _print_error("--limit must be a positive integer.")
            return 2
        items = (
            store.recent(args.limit) if args.limit is not None else store.list()
        )
        if not items:
            out.print("No history yet.")
            return 0
        table = Table(title="Study History")
        table.add_column("#", justify="right")
        table.add_column("Topic")
        table.add_column("Sources", justify="right")
        for idx, item in enumerate(items, start=1):
            table.add_row(str(idx), item.topic, str(len(item.sources)))
        out.print(table)
        return 0

    if args.command == "show":
        item = store.select(args.topic)
        if item is None:
            _print_error(f"No history entry for '{args.topic}'.")
            return 1
        out.rule(Text(item.topic))
        out.print(item.guide, markup=False)
        if item.sources:
            out.print()
            out.print("Sources:")
            for line in source_lines(item.sources):
                out.print(f"  - {line}", markup=False)
        return 0

    raise RuntimeError(f"Unhandled history command: {args.command}")


# config --------------------------------------------------------------------


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-buddy config",
        description="Manage the Study Buddy configuration file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init", help="Write the default configuration template."
    )
    init_parser.add_argument(
        "--path",
        type=str,
        help="Optional destination for the config TOML.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file if present.",
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Validate the active configuration file."
    )
    validate_parser.add_argument(
        "--path",
        type=str,
        help="Path to the config TOML (defaults to the resolved location).",
    )
    validate_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress success output; errors still print to stderr.",
    )

    path_parser = subparsers.add_parser(
        "path", help="Print the resolved config path."
    )
    path_parser.add_argument(
        "--path",
        type=str,
        help="Optional path override to resolve.",
    )
    return parser


def config_main(argv: Sequence[str] | None = None) -> int:
    parser = _build_config_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    explicit_path = _to_path(args.path)
    try:
        if args.command == "init":
            target = config_mod.resolve_config_path(explicit_path=explicit_path)
            config_mod.write_template(target, overwrite=args.force)
            print(f"Wrote config template to {target}")
            return 0
        if args.command == "validate":
            cfg = config_mod.load_config(explicit_path=explicit_path)
            if not args.quiet:
                print("Configuration OK")
                print(f"  source: {cfg.source or '(defaults)'}")
                print(f"  chat_model: {cfg.openai.chat_model}")
                print(f"  guide_model: {cfg.openai.guide_model}")
                print(f"  history_file: {cfg.history.filename}")
                print(f"  dark: {str(cfg.ui.dark).lower()}")
                print(f"  log_level: {cfg.logging.level}")
            return 0
        if args.command == "path":
            path = config_mod.resolve_config_path(explicit_path=explicit_path)
            print(path)
            return 0
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2
    raise RuntimeError(f"Unhandled config command: {args.command}")
