"""Data models for trivia question generation."""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

CUSTOM_DIFFICULTY_PREFIX = "custom:"

# Multipliers for custom difficulty descriptions, checked in order
_CUSTOM_DIFFICULTY_TIERS = (
    (
        2.5,
        (
            "expert",
            "professional",
            "advanced",
            "phd",
            "doctorate",
            "master",
            "graduate",
        ),
    ),
    (2.0, ("university", "college", "bachelor", "undergraduate")),
    (1.5, ("high school", "secondary", "intermediate")),
    (1.0, ("elementary", "beginner", "basic", "simple", "easy")),
)
DEFAULT_CUSTOM_DIFFICULTY_MULTIPLIER = 1.3


class DifficultyLevel(str, enum.Enum):
    """Standard difficulty levels."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def is_custom_difficulty(difficulty: str) -> bool:
    """Check whether a difficulty value uses the ``custom:<text>`` form."""
    return difficulty.strip().lower().startswith(CUSTOM_DIFFICULTY_PREFIX)


def extract_custom_difficulty_text(difficulty: str) -> str:
    """Return the free-text part of a ``custom:<text>`` difficulty."""
    stripped = difficulty.strip()
    if stripped.lower().startswith(CUSTOM_DIFFICULTY_PREFIX):
        return stripped[len(CUSTOM_DIFFICULTY_PREFIX) :].strip()
    return stripped


def normalize_difficulty(difficulty: Any) -> str:
    """Validate a difficulty value and return its canonical string form.

    Args:
        difficulty: A DifficultyLevel, "easy"/"medium"/"hard", or "custom:<text>"

    Returns:
        Canonical difficulty string

    Raises:
        ValueError: If the value is empty, unknown, or a custom difficulty
            without a description
    """
    if isinstance(difficulty, DifficultyLevel):
        return difficulty.value
    if not isinstance(difficulty, str) or not difficulty.strip():
        raise ValueError("difficulty must be a non-empty string")

    if is_custom_difficulty(difficulty):
        text = extract_custom_difficulty_text(difficulty)
        if not text:
            raise ValueError("custom difficulty requires a description")
        return f"{CUSTOM_DIFFICULTY_PREFIX}{text}"

    normalized = difficulty.strip().lower()
    try:
        return DifficultyLevel(normalized).value
    except ValueError:
        raise ValueError(
            f"Unknown difficulty '{difficulty}'. "
            f"Expected one of {[d.value for d in DifficultyLevel]} or 'custom:<text>'"
        ) from None


def custom_difficulty_multiplier(description: str) -> float:
    """Estimate a score multiplier from a custom difficulty description."""
    keywords = description.lower()
    for multiplier, words in _CUSTOM_DIFFICULTY_TIERS:
        if any(word in keywords for word in words):
            return multiplier
    return DEFAULT_CUSTOM_DIFFICULTY_MULTIPLIER


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Answer(BaseModel):
    """A single answer option."""

    text: str = Field(..., min_length=1)
    is_correct: bool = False


class Question(BaseModel):
    """A validated multiple-choice trivia question."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    topic: str
    difficulty: str
    question_text: str = Field(..., min_length=1)
    answers: List[Answer] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: str) -> str:
        """Accept standard or custom difficulty strings."""
        return normalize_difficulty(v)

    @model_validator(mode="after")
    def validate_correct_answer(self) -> "Question":
        """Exactly one answer is correct and the index points at it."""
        correct = [i for i, answer in enumerate(self.answers) if answer.is_correct]
        if len(correct) != 1:
            raise ValueError(
                f"Question must have exactly one correct answer, found {len(correct)}"
            )
        if self.correct_answer_index != correct[0]:
            raise ValueError(
                f"correct_answer_index {self.correct_answer_index} does not match "
                f"correct answer position {correct[0]}"
            )
        return self

    @property
    def correct_answer(self) -> Answer:
        """The answer flagged correct."""
        return self.answers[self.correct_answer_index]

    @property
    def answer_texts(self) -> List[str]:
        """Answer texts in display order."""
        return [answer.text for answer in self.answers]
