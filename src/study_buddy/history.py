"""Persisted list of previously studied topics."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Sequence

from .core.logging import get_logger
from .models import HistoryItem, Source

__all__ = ["HistoryStore"]


logger = get_logger(__name__)


class HistoryStore:
    """Newest-first topic history backed by a single JSON document.

    The file is read once on construction and rewritten as a whole after
    every change. Unreadable data is treated as an empty history and write
    failures are logged and ignored, since history is a convenience.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._items: list[HistoryItem] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        return len(self._items)

    def list(self) -> tuple[HistoryItem, ...]:
        return tuple(self._items)

    def recent(self, limit: int = 5) -> tuple[HistoryItem, ...]:
        return tuple(self._items[: max(0, limit)])

    def select(self, topic: str) -> HistoryItem | None:
        for item in self._items:
            if item.matches(topic):
                return item
        return None

    def add(
        self, topic: str, guide: str, sources: Sequence[Source] = ()
    ) -> bool:
        """Prepend ``topic`` unless an entry already matches it.

        Matching ignores case and the first stored entry always wins.
        """

        if self.select(topic) is not None:
            return False
        self._items.insert(
            0, HistoryItem(topic=topic, guide=guide, sources=tuple(sources))
        )
        self._save()
        return True

    def _load(self) -> list[HistoryItem]:
        if self._path is None or not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning(
                "history unreadable; starting empty",
                exc_info=True,
                extra={"path": self._path},
            )
            return []
        if not isinstance(payload, list):
            logger.warning(
                "history is not a list; starting empty",
                extra={"path": self._path},
            )
            return []
        return _decode_items(payload)

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            _atomic_write_json(
                self._path, [item.to_dict() for item in self._items]
            )
        except OSError:
            logger.warning(
                "failed to persist history",
                exc_info=True,
                extra={"path": self._path},
            )


def _decode_items(payload: Iterable[Any]) -> list[HistoryItem]:
    items: list[HistoryItem] = []
    for index, entry in enumerate(payload):
        try:
            item = HistoryItem.from_dict(entry)
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning(
                "skipping malformed history entry", extra={"index": index}
            )
            continue
        if any(existing.matches(item.topic) for existing in items):
            continue
        items.append(item)
    return items


def _atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        with handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except Exception:
        Path(handle.name).unlink(missing_ok=True)
        raise
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
