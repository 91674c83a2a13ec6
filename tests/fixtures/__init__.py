"""Shared testing fakes for the study_buddy test suite."""

from .openai import Choice, FakeOpenAI, url_citation  # noqa: F401
from .service import ScriptedService, failure  # noqa: F401

__all__ = [
    "Choice",
    "FakeOpenAI",
    "ScriptedService",
    "failure",
    "url_citation",
]
