from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from fixtures import FakeOpenAI, url_citation
from study_buddy.config import default_config
from study_buddy.models import Source
from study_buddy.service import (
    OpenAIContentService,
    ParseError,
    ServiceError,
    build_evaluation_prompt,
    build_question_prompt,
    extract_sources,
    parse_evaluation,
)


@pytest.fixture
def openai_config():
    return default_config().openai


@pytest.fixture
def content_service(openai_config, fake_openai):
    return OpenAIContentService(openai_config, client=fake_openai)


def test_question_prompt_lists_previous_questions():
    prompt = build_question_prompt("guide text", ["What is X?", "Why Y?"])
    assert "guide text" in prompt
    assert "- What is X?" in prompt
    assert "- Why Y?" in prompt
    assert "- (none)" in build_question_prompt("guide", [])


def test_evaluation_prompt_includes_question_and_answer():
    prompt = build_evaluation_prompt("guide", "What is X?", "It is Z")
    assert "Question: What is X?" in prompt
    assert "User's Answer: It is Z" in prompt


def test_extract_sources_reads_mappings_and_objects():
    message = SimpleNamespace(
        annotations=[
            url_citation("https://a.example", "A"),
            SimpleNamespace(
                type="url_citation",
                url_citation=SimpleNamespace(
                    url="https://b.example", title="B"
                ),
            ),
            {"type": "file_citation", "file_citation": {"file_id": "f"}},
        ]
    )
    assert extract_sources(message) == [
        {"uri": "https://a.example", "title": "A"},
        {"uri": "https://b.example", "title": "B"},
    ]
    assert extract_sources(SimpleNamespace(annotations=None)) == []


def test_generate_guide_uses_search_model_and_dedupes(
    content_service, fake_openai, openai_config
):
    fake_openai.queue_response(
        "# Photosynthesis\n\nPlants make sugar.",
        annotations=[
            url_citation("https://bio.example/p", "Biology"),
            url_citation("https://bio.example/p", "Biology (dup)"),
        ],
    )
    guide = content_service.generate_guide("Photosynthesis")

    assert guide.text.startswith("# Photosynthesis")
    assert guide.sources == (Source("https://bio.example/p", "Biology"),)
    call = fake_openai.last_call
    assert call["model"] == openai_config.guide_model
    assert call["web_search_options"] == {}
    assert "temperature" not in call
    assert call["max_tokens"] == openai_config.max_output_tokens
    assert "Photosynthesis" in call["messages"][-1]["content"]


def test_generate_question_strips_reply(content_service, fake_openai):
    fake_openai.queue_response("  What do chloroplasts do?  \n")
    question = content_service.generate_question("guide", ["Q1"])
    assert question == "What do chloroplasts do?"
    call = fake_openai.last_call
    assert call["model"] == "gpt-4o-mini"
    assert call["temperature"] == pytest.approx(0.4)
    assert "- Q1" in call["messages"][-1]["content"]


def test_evaluate_answer_requests_json_schema(content_service, fake_openai):
    fake_openai.queue_response(
        json.dumps({"evaluation": "Correct", "explanation": "Spot on."})
    )
    feedback = content_service.evaluate_answer("guide", "Q?", "A")
    assert feedback.evaluation == "Correct"
    assert feedback.is_correct
    call = fake_openai.last_call
    assert call["response_format"]["type"] == "json_schema"
    assert call["temperature"] == 0.0


def test_evaluate_answer_raises_parse_error(content_service, fake_openai):
    fake_openai.queue_response("I think it is right")
    with pytest.raises(ParseError):
        content_service.evaluate_answer("guide", "Q?", "A")


def test_summary_and_key_points(content_service, fake_openai):
    fake_openai.queue_response("Short summary.")
    fake_openai.queue_response("- one\n- two")
    assert content_service.summarize("guide") == "Short summary."
    assert content_service.extract_key_points("guide") == "- one\n- two"
    assert len(fake_openai.calls) == 2


def test_client_errors_become_service_errors(content_service, fake_openai):
    fake_openai.queue_error(RuntimeError("connection reset"))
    with pytest.raises(ServiceError) as excinfo:
        content_service.generate_guide("Topic")
    assert str(excinfo.value) == (
        "Failed to generate study guide: connection reset"
    )


@pytest.mark.parametrize("content", ["", "   ", None])
def test_empty_reply_is_service_error(content_service, fake_openai, content):
    fake_openai.queue_response(content)
    with pytest.raises(ServiceError, match="empty response"):
        content_service.summarize("guide")


def test_missing_credentials_fail_on_first_call(openai_config):
    def factory():
        raise RuntimeError("OPENAI_API_KEY not found in environment.")

    content_service = OpenAIContentService(
        openai_config, client_factory=factory
    )
    with pytest.raises(ServiceError, match="OPENAI_API_KEY"):
        content_service.generate_question("guide", [])


def test_client_factory_called_once(openai_config, fake_openai):
    created = []

    def factory():
        created.append(fake_openai)
        return fake_openai

    content_service = OpenAIContentService(
        openai_config, client_factory=factory
    )
    fake_openai.queue_response("one")
    fake_openai.queue_response("two")
    content_service.summarize("guide")
    content_service.summarize("guide")
    assert len(created) == 1


@pytest.mark.parametrize(
    "content, expected",
    [
        ('{"evaluation": "Correct", "explanation": "ok"}', "Correct"),
        (
            '```json\n{"evaluation": " Incorrect ", "explanation": "no"}\n```',
            "Incorrect",
        ),
        (
            'Result: {"evaluation": "Mostly right", "explanation": "close"}',
            "Mostly right",
        ),
    ],
)
def test_parse_evaluation_variants(content, expected):
    assert parse_evaluation(content).evaluation == expected


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2]",
        '{"explanation": "missing label"}',
        '{"evaluation": "", "explanation": "blank"}',
        '{"evaluation": "Correct"}',
    ],
)
def test_parse_evaluation_rejects_malformed(content):
    with pytest.raises(ParseError):
        parse_evaluation(content)
