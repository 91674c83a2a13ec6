"""Value types shared by the content service, quiz, and history store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, MutableMapping, Sequence

__all__ = [
    "QUIZ_LENGTH",
    "Source",
    "StudyGuide",
    "HistoryItem",
    "Evaluation",
    "EvaluationFeedback",
    "PanelKind",
    "AuxPanel",
    "dedupe_sources",
    "source_lines",
]


QUIZ_LENGTH = 5


@dataclass(frozen=True)
class Source:
    """A web citation returned alongside a generated guide."""

    uri: str
    title: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"uri": self.uri, "title": self.title}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Source":
        return cls(uri=str(payload["uri"]), title=str(payload["title"]))


def dedupe_sources(
    candidates: Iterable[Mapping[str, Any] | Source],
) -> tuple[Source, ...]:
    """Drop incomplete citations and keep the first entry per ``uri``.

    Candidates may be ``Source`` objects or mappings with optional ``uri`` and
    ``title`` keys. Order of first occurrence is preserved.
    """

    seen: set[str] = set()
    unique: list[Source] = []
    for item in candidates:
        if isinstance(item, Source):
            uri, title = item.uri, item.title
        else:
            uri, title = item.get("uri"), item.get("title")
        if not uri or not title:
            continue
        uri = str(uri)
        if uri in seen:
            continue
        seen.add(uri)
        unique.append(Source(uri=uri, title=str(title)))
    return tuple(unique)


@dataclass(frozen=True)
class StudyGuide:
    """Markdown guide text plus its grounding sources."""

    text: str
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class HistoryItem:
    """A previously studied topic kept for re-display."""

    topic: str
    guide: str
    sources: tuple[Source, ...] = field(default_factory=tuple)

    @property
    def study_guide(self) -> StudyGuide:
        return StudyGuide(text=self.guide, sources=self.sources)

    def matches(self, topic: str) -> bool:
        return self.topic.lower() == topic.lower()

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "topic": self.topic,
            "guide": self.guide,
            "sources": [source.to_dict() for source in self.sources],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "HistoryItem":
        topic = payload["topic"]
        guide = payload["guide"]
        if not isinstance(topic, str) or not isinstance(guide, str):
            raise ValueError("History entries need string topic and guide.")
        raw_sources = payload.get("sources") or []
        if not isinstance(raw_sources, list):
            raise ValueError("History entry sources must be a list.")
        return cls(
            topic=topic,
            guide=guide,
            sources=tuple(Source.from_dict(item) for item in raw_sources),
        )


class Evaluation(Enum):
    CORRECT = "Correct"
    INCORRECT = "Incorrect"
    PARTIALLY_CORRECT = "Partially Correct"
    UNKNOWN = "Unknown"

    @classmethod
    def classify(cls, label: str) -> "Evaluation":
        for member in (cls.CORRECT, cls.INCORRECT, cls.PARTIALLY_CORRECT):
            if label == member.value:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class EvaluationFeedback:
    """Grader verdict for a single answer.

    ``evaluation`` keeps the raw label from the model. Labels outside the
    three known ones are kept verbatim and classified as ``UNKNOWN``.
    """

    evaluation: str
    explanation: str

    @property
    def category(self) -> Evaluation:
        return Evaluation.classify(self.evaluation)

    @property
    def is_correct(self) -> bool:
        return self.evaluation == Evaluation.CORRECT.value


class PanelKind(Enum):
    SUMMARY = "summary"
    KEY_POINTS = "key_points"

    @property
    def title(self) -> str:
        return "Summary" if self is PanelKind.SUMMARY else "Key Points"


@dataclass(frozen=True)
class AuxPanel:
    """The single auxiliary panel shown beneath a study guide."""

    kind: PanelKind
    text: str


def source_lines(sources: Sequence[Source]) -> list[str]:
    """Render sources as ``title <uri>`` lines for plain-text views."""

    return [f"{source.title} <{source.uri}>" for source in sources]
