"""Turn raw model output into a validated Question.

Models are asked to reply with ``{"question", "answers", "explanation"}``
and to put the correct answer first. The normalizer parses that reply,
trims it, shuffles the answers so the correct one is not always first, and
recomputes the correct index after the shuffle.
"""

import json
import logging
import random
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .models import (
    Answer,
    DifficultyLevel,
    Question,
    custom_difficulty_multiplier,
    extract_custom_difficulty_text,
    is_custom_difficulty,
    normalize_difficulty,
)

logger = logging.getLogger(__name__)

# Matches a reply wrapped in a markdown code fence, with or without a language tag
_CODE_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)

DEFAULT_UNABLE_EXPLANATION = (
    "Unable to generate question for this topic/difficulty combination"
)

# Placeholder content for build_fallback_question
FALLBACK_ERROR_MESSAGES = {
    "parse_error": "An error occurred while processing the AI response",
    "validation_error": "An error occurred while validating the question",
    "api_error": "An error occurred while connecting to the AI service",
    "unknown_error": "An unexpected error occurred while generating the question",
}
FALLBACK_ANSWERS = (
    ("Try again", True),
    ("Change topic", False),
    ("Change difficulty", False),
    ("Contact support", False),
)


class QuestionValidationError(ValueError):
    """Raised when model output cannot be turned into a valid Question."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class UnableToGenerateError(QuestionValidationError):
    """The model explicitly declined to produce a question."""

    def __init__(self, explanation: str, provider: Optional[str] = None):
        self.explanation = explanation
        super().__init__(f"AI could not generate question: {explanation}", provider)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    match = _CODE_FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def map_custom_difficulty(description: str) -> DifficultyLevel:
    """Estimate a standard level for a custom description from its keywords."""
    multiplier = custom_difficulty_multiplier(description)
    if multiplier >= 2.0:
        return DifficultyLevel.HARD
    if multiplier <= 1.0:
        return DifficultyLevel.EASY
    return DifficultyLevel.MEDIUM


class ResponseNormalizer:
    """Parses, validates and shuffles model replies into Questions."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: Random source used for shuffling answers
        """
        self._rng = rng or random.Random()

    def normalize(
        self,
        raw_text: str,
        topic: str,
        difficulty: str,
        provider: Optional[str] = None,
    ) -> Question:
        """Build a Question from a model's raw text reply.

        Args:
            raw_text: Text extracted from the provider envelope
            topic: Requested topic
            difficulty: Requested difficulty
            provider: Provider name, recorded in metadata and errors

        Returns:
            A validated Question with shuffled answers

        Raises:
            UnableToGenerateError: If the model returned ``question: null``
            QuestionValidationError: If the reply is malformed
        """
        payload = self._parse_payload(raw_text, provider)

        question_text = payload.get("question")
        if question_text is None:
            explanation = payload.get("explanation") or DEFAULT_UNABLE_EXPLANATION
            logger.warning(
                f"[{provider or 'unknown'}] AI could not generate question "
                f"for topic {topic!r}: {explanation}"
            )
            raise UnableToGenerateError(str(explanation), provider)

        if not isinstance(question_text, str) or not question_text.strip():
            raise QuestionValidationError("Question text is empty", provider)

        answer_texts = self._parse_answers(payload.get("answers"), provider)
        correct_index = self._initial_correct_index(
            payload.get("correctAnswerIndex"), len(answer_texts)
        )

        answers = [
            Answer(text=text, is_correct=i == correct_index)
            for i, text in enumerate(answer_texts)
        ]
        self._rng.shuffle(answers)

        shuffled_index = next(
            (i for i, answer in enumerate(answers) if answer.is_correct), -1
        )
        if shuffled_index == -1:
            raise QuestionValidationError(
                "No correct answer found after shuffle", provider
            )

        metadata = self._build_metadata(difficulty, payload, provider)

        try:
            return Question(
                topic=topic,
                difficulty=difficulty,
                question_text=question_text.strip(),
                answers=answers,
                correct_answer_index=shuffled_index,
                metadata=metadata,
            )
        except ValidationError as e:
            raise QuestionValidationError(
                f"Invalid question format: {e.errors()[0].get('msg', str(e))}",
                provider,
            ) from e

    @staticmethod
    def _parse_payload(raw_text: str, provider: Optional[str]) -> Dict[str, Any]:
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise QuestionValidationError("Response content is empty", provider)
        try:
            payload = json.loads(strip_code_fences(raw_text))
        except json.JSONDecodeError as e:
            raise QuestionValidationError(
                f"Response is not valid JSON: {e.msg}", provider
            ) from e
        if not isinstance(payload, dict):
            raise QuestionValidationError("Response JSON is not an object", provider)
        return payload

    @staticmethod
    def _parse_answers(raw_answers: Any, provider: Optional[str]) -> List[str]:
        if not isinstance(raw_answers, list) or len(raw_answers) < 2:
            raise QuestionValidationError(
                "Invalid question format: at least two answers are required", provider
            )
        texts = []
        for answer in raw_answers:
            if not isinstance(answer, str) or not answer.strip():
                raise QuestionValidationError(
                    "Invalid question format: answers must be non-empty strings",
                    provider,
                )
            texts.append(answer.strip())
        return texts

    @staticmethod
    def _initial_correct_index(raw_index: Any, answer_count: int) -> int:
        # The prompt asks for the correct answer first
        if isinstance(raw_index, int) and not isinstance(raw_index, bool):
            if 0 <= raw_index < answer_count:
                return raw_index
        return 0

    @staticmethod
    def _build_metadata(
        difficulty: str, payload: Dict[str, Any], provider: Optional[str]
    ) -> Dict[str, Any]:
        canonical = normalize_difficulty(difficulty)
        metadata: Dict[str, Any] = {"actual_difficulty": canonical}

        if is_custom_difficulty(canonical):
            description = extract_custom_difficulty_text(canonical)
            mapped = _coerce_level(payload.get("mappedDifficulty"))
            metadata["custom_difficulty_description"] = description
            metadata["custom_difficulty_multiplier"] = custom_difficulty_multiplier(
                description
            )
            metadata["mapped_difficulty"] = (
                mapped or map_custom_difficulty(description)
            ).value
        else:
            metadata["custom_difficulty_multiplier"] = 1.0
            metadata["mapped_difficulty"] = canonical

        explanation = payload.get("explanation")
        if isinstance(explanation, str) and explanation.strip():
            metadata["explanation"] = explanation.strip()
        if provider:
            metadata["provider"] = provider
        return metadata


def _coerce_level(value: Any) -> Optional[DifficultyLevel]:
    if not isinstance(value, str):
        return None
    try:
        return DifficultyLevel(value.strip().lower())
    except ValueError:
        return None


def build_fallback_question(
    topic: str, difficulty: str, error_type: str = "unknown_error"
) -> Question:
    """Build a placeholder question describing a generation failure.

    Generation never returns this on its own; callers that prefer a
    placeholder over an exception can use it explicitly.

    Args:
        topic: Requested topic
        difficulty: Requested difficulty
        error_type: One of FALLBACK_ERROR_MESSAGES' keys

    Returns:
        Question whose only correct answer is "Try again"
    """
    message = FALLBACK_ERROR_MESSAGES.get(
        error_type, FALLBACK_ERROR_MESSAGES["unknown_error"]
    )
    return Question(
        topic=topic,
        difficulty=difficulty,
        question_text=message,
        answers=[Answer(text=text, is_correct=correct) for text, correct in FALLBACK_ANSWERS],
        correct_answer_index=0,
        metadata={"is_fallback": True, "error_type": error_type},
    )
