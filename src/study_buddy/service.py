"""Content service boundary backed by OpenAI chat completions.

Every operation is a single request/response round trip. Failures of any
kind, including a missing API key, surface as :class:`ServiceError` so the
state machine has one thing to catch.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Mapping, Protocol, Sequence

from .config import OpenAIConfig
from .core.ai import load_client
from .core.logging import get_logger
from .models import EvaluationFeedback, StudyGuide, dedupe_sources

__all__ = [
    "ServiceError",
    "ParseError",
    "ContentService",
    "OpenAIContentService",
    "parse_evaluation",
    "extract_sources",
]


logger = get_logger(__name__)


class ServiceError(RuntimeError):
    """Raised when a content service call fails."""


class ParseError(ServiceError):
    """Raised when structured model output cannot be decoded."""


class ContentService(Protocol):
    """Operations the study machine needs from a generative backend."""

    def generate_guide(self, topic: str) -> StudyGuide:
        """Return a markdown study guide and its citations."""

    def generate_question(self, guide: str, asked: Sequence[str]) -> str:
        """Return one new quiz question about ``guide``."""

    def evaluate_answer(
        self, guide: str, question: str, answer: str
    ) -> EvaluationFeedback:
        """Grade ``answer`` against ``guide``."""

    def summarize(self, guide: str) -> str:
        """Return a short beginner-level summary."""

    def extract_key_points(self, guide: str) -> str:
        """Return the guide's key points as a bulleted list."""


_SYSTEM_PROMPT = (
    "You are Study Buddy, a patient tutor who writes clear, accurate study "
    "material for beginners."
)

_EVALUATION_SCHEMA: Mapping[str, Any] = {
    "name": "answer_evaluation",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "evaluation": {
                "type": "string",
                "description": (
                    "Must be one of: 'Correct', 'Incorrect', or "
                    "'Partially Correct'."
                ),
            },
            "explanation": {
                "type": "string",
                "description": "Brief reason for the evaluation.",
            },
        },
        "required": ["evaluation", "explanation"],
        "additionalProperties": False,
    },
}


def _guide_block(guide: str) -> str:
    return f"Study Guide:\n---\n{guide}\n---"


def build_guide_prompt(topic: str) -> str:
    return (
        f'Generate a concise and accurate study guide on the topic: "{topic}". '
        "Make it easy to understand for a beginner. Break it down into key "
        "concepts with brief explanations, formatted as Markdown."
    )


def build_question_prompt(guide: str, asked: Sequence[str]) -> str:
    previous = "\n".join(f"- {question}" for question in asked) or "- (none)"
    return (
        "Based on the following study guide, write one open-ended quiz "
        "question. Reply with the question only.\n\n"
        f"{_guide_block(guide)}\n\n"
        "Do not repeat any of these previous questions:\n"
        f"{previous}\n\n"
        "Generate a new, unique question."
    )


def build_evaluation_prompt(guide: str, question: str, answer: str) -> str:
    return (
        "Using the study guide, evaluate the user's answer to the question. "
        "Reply with JSON containing 'evaluation' (one of 'Correct', "
        "'Incorrect', 'Partially Correct') and 'explanation'.\n\n"
        f"{_guide_block(guide)}\n\n"
        f"Question: {question}\n"
        f"User's Answer: {answer}"
    )


def build_summary_prompt(guide: str) -> str:
    return (
        "Summarize the following study guide in simple terms for a beginner, "
        "in one or two short paragraphs.\n\n"
        f"{_guide_block(guide)}"
    )


def build_key_points_prompt(guide: str) -> str:
    return (
        "Extract the most important key points from the following study "
        "guide as a concise Markdown bulleted list.\n\n"
        f"{_guide_block(guide)}"
    )


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_sources(message: Any) -> list[dict[str, Any]]:
    """Collect ``url_citation`` annotations from a chat completion message."""

    candidates: list[dict[str, Any]] = []
    for annotation in _field(message, "annotations") or []:
        if _field(annotation, "type") not in (None, "url_citation"):
            continue
        citation = _field(annotation, "url_citation") or annotation
        candidates.append(
            {
                "uri": _field(citation, "url"),
                "title": _field(citation, "title"),
            }
        )
    return candidates


def _extract_json_object(content: str) -> str:
    text = content.strip()
    fenced = re.search(r"```(?:json)?\s*(.+?)```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1).strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        return text[first : last + 1]
    return text


def parse_evaluation(content: str) -> EvaluationFeedback:
    """Decode the grader's JSON reply into :class:`EvaluationFeedback`."""

    try:
        data = json.loads(_extract_json_object(content))
    except json.JSONDecodeError as exc:
        raise ParseError(
            "Failed to evaluate the answer: model returned invalid JSON."
        ) from exc
    if not isinstance(data, dict):
        raise ParseError(
            "Failed to evaluate the answer: expected a JSON object."
        )
    evaluation = data.get("evaluation")
    explanation = data.get("explanation")
    if not isinstance(evaluation, str) or not evaluation.strip():
        raise ParseError(
            "Failed to evaluate the answer: missing 'evaluation' field."
        )
    if not isinstance(explanation, str):
        raise ParseError(
            "Failed to evaluate the answer: missing 'explanation' field."
        )
    return EvaluationFeedback(
        evaluation=evaluation.strip(), explanation=explanation.strip()
    )


class OpenAIContentService:
    """Content service adapter for the OpenAI chat completions API.

    The OpenAI client is created on first use, so a missing API key only
    fails the first request instead of application startup.
    """

    def __init__(
        self,
        config: OpenAIConfig,
        *,
        client: Any | None = None,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._client_factory = client_factory or (
            lambda: load_client(
                api_base=config.api_base,
                timeout=config.request_timeout_seconds,
            )
        )

    def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _complete(
        self,
        action: str,
        prompt: str,
        *,
        model: str | None = None,
        **options: Any,
    ) -> Any:
        target = model or self._config.chat_model
        logger.debug(
            "content service request",
            extra={"action": action, "model": target},
        )
        try:
            client = self._ensure_client()
            response = client.chat.completions.create(
                model=target,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self._config.max_output_tokens,
                **options,
            )
            message = response.choices[0].message
        except Exception as exc:
            logger.exception(
                "content service request failed", extra={"action": action}
            )
            raise ServiceError(f"Failed to {action}: {exc}") from exc
        if not (message.content or "").strip():
            logger.warning("empty model reply", extra={"action": action})
            raise ServiceError(f"Failed to {action}: empty response.")
        return message

    def generate_guide(self, topic: str) -> StudyGuide:
        # Search models reject sampling parameters such as temperature.
        message = self._complete(
            "generate study guide",
            build_guide_prompt(topic),
            model=self._config.guide_model,
            web_search_options={},
        )
        sources = dedupe_sources(extract_sources(message))
        logger.info(
            "study guide generated",
            extra={"topic": topic, "sources": len(sources)},
        )
        return StudyGuide(text=message.content.strip(), sources=sources)

    def generate_question(self, guide: str, asked: Sequence[str]) -> str:
        message = self._complete(
            "generate a new question",
            build_question_prompt(guide, asked),
            temperature=self._config.temperature,
        )
        return message.content.strip()

    def evaluate_answer(
        self, guide: str, question: str, answer: str
    ) -> EvaluationFeedback:
        message = self._complete(
            "evaluate the answer",
            build_evaluation_prompt(guide, question, answer),
            temperature=0.0,
            response_format={
                "type": "json_schema",
                "json_schema": _EVALUATION_SCHEMA,
            },
        )
        try:
            return parse_evaluation(message.content)
        except ParseError:
            logger.warning(
                "unparseable evaluation reply",
                extra={"content": message.content[:400]},
            )
            raise

    def summarize(self, guide: str) -> str:
        message = self._complete(
            "generate summary",
            build_summary_prompt(guide),
            temperature=self._config.temperature,
        )
        return message.content.strip()

    def extract_key_points(self, guide: str) -> str:
        message = self._complete(
            "generate key points",
            build_key_points_prompt(guide),
            temperature=self._config.temperature,
        )
        return message.content.strip()
