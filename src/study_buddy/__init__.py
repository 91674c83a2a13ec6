"""Study Buddy: AI study guides and quizzes in the terminal."""

from .machine import AppState, StudyMachine, TransitionError
from .service import ContentService, OpenAIContentService, ServiceError

__all__ = [
    "AppState",
    "StudyMachine",
    "TransitionError",
    "ContentService",
    "OpenAIContentService",
    "ServiceError",
]
