"""Configuration management for Study Buddy.

Settings live in ``buddy.toml`` under the workspace ``config`` directory. A
missing file means defaults; a present file is merged over the defaults with
unknown keys rejected, then validated into frozen dataclasses.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - interpreter guard
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

from .core import workspace


CONFIG_PATH_ENV = "STUDY_BUDDY_CONFIG"
CONFIG_FILENAME = "buddy.toml"


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class OpenAIConfig:
    chat_model: str
    guide_model: str
    temperature: float
    max_output_tokens: int
    request_timeout_seconds: int
    api_base: Optional[str]


@dataclass(frozen=True)
class HistoryConfig:
    filename: str
    preview_limit: int


@dataclass(frozen=True)
class UIConfig:
    dark: bool


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class BuddyConfig:
    openai: OpenAIConfig
    history: HistoryConfig
    ui: UIConfig
    logging: LoggingConfig
    source: Optional[Path] = None


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    f"Expected table for '{dotted}', found "
                    f"{type(value).__name__}."
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    return _require_string(value, field=field)


def _build_openai(section: Mapping[str, Any]) -> OpenAIConfig:
    return OpenAIConfig(
        chat_model=_require_string(
            section.get("chat_model"), field="openai.chat_model"
        ),
        guide_model=_require_string(
            section.get("guide_model"), field="openai.guide_model"
        ),
        temperature=_require_float_range(
            section.get("temperature"),
            field="openai.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_output_tokens=_require_positive_int(
            section.get("max_output_tokens"),
            field="openai.max_output_tokens",
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field="openai.request_timeout_seconds",
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field="openai.api_base"
        ),
    )


def _build_history(section: Mapping[str, Any]) -> HistoryConfig:
    filename = _require_string(
        section.get("filename"), field="history.filename"
    )
    if Path(filename).name != filename:
        raise ConfigError("'history.filename' must be a bare file name.")
    preview_limit = _require_positive_int(
        section.get("preview_limit"), field="history.preview_limit"
    )
    return HistoryConfig(filename=filename, preview_limit=preview_limit)


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if level not in allowed:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(
    tree: Mapping[str, Any], *, source: Optional[Path]
) -> BuddyConfig:
    return BuddyConfig(
        openai=_build_openai(tree["openai"]),
        history=_build_history(tree["history"]),
        ui=UIConfig(dark=_require_bool(tree["ui"].get("dark"), field="ui.dark")),
        logging=_build_logging(tree["logging"]),
        source=source,
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve()
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()
    layout = workspace.ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> BuddyConfig:
    """Load the TOML config, applying defaults and validation.

    An explicitly requested file must exist; the default location may be
    absent, in which case the built-in defaults apply.
    """

    path = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = default_tree()
    if not path.exists():
        if explicit_path is not None:
            raise ConfigError(f"Config file not found: {path}")
        return _build_config(tree, source=None)
    toml_data = _load_toml(path)
    _merge_dict(tree, toml_data)
    return _build_config(tree, source=path)


def default_config() -> BuddyConfig:
    return _build_config(default_tree(), source=None)


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    """Write the default template to ``path``.

    Args:
        path: Destination TOML file.
        overwrite: When ``True`` existing files are replaced.
        mode: File permission bitmask to apply when supported.
    """

    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config_template(), encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "openai": {
        "chat_model": "gpt-4o-mini",
        "guide_model": "gpt-4o-mini-search-preview",
        "temperature": 0.4,
        "max_output_tokens": 1200,
        "request_timeout_seconds": 60,
        "api_base": None,
    },
    "history": {
        "filename": "history.json",
        "preview_limit": 5,
    },
    "ui": {
        "dark": True,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# Study Buddy configuration

[openai]
# Model used for quiz questions, grading, summaries and key points
chat_model = "gpt-4o-mini"
# Web-search capable model used to write study guides with citations
guide_model = "gpt-4o-mini-search-preview"
# Sampling temperature (0.0-2.0); ignored by search models
temperature = 0.4
max_output_tokens = 1200
request_timeout_seconds = 60
# Optional API base override
# api_base = "https://api.openai.com/v1"

[history]
# Stored under the workspace history/ directory
filename = "history.json"
# Topics listed on the home screen before "view all" is offered
preview_limit = 5

[ui]
dark = true

[logging]
level = "INFO"
verbose = false
"""
