"""Trivia question generation service."""

from .generator import (
    NoProvidersAvailableError,
    QuestionGenerationError,
    TriviaQuestionGenerator,
)
from .models import Answer, DifficultyLevel, Question
from .normalizer import QuestionValidationError, UnableToGenerateError
from .observability import setup_observability
from .providers import LLMProviderError

__version__ = "0.1.0"

__all__ = [
    "Answer",
    "DifficultyLevel",
    "LLMProviderError",
    "NoProvidersAvailableError",
    "Question",
    "QuestionGenerationError",
    "QuestionValidationError",
    "TriviaQuestionGenerator",
    "UnableToGenerateError",
    "setup_observability",
]
