"""Prompt templates for trivia question generation.

This module contains the prompts sent to every LLM provider. Providers
treat the prompt as opaque text.
"""

from typing import List, Optional, Sequence

from .models import (
    DifficultyLevel,
    extract_custom_difficulty_text,
    is_custom_difficulty,
)

MIN_ANSWER_COUNT = 3
MAX_ANSWER_COUNT = 5

# Exclusion list is capped to keep prompts small
MAX_EXCLUDED_QUESTIONS = 20

SYSTEM_PROMPT = (
    "You are a trivia question generator that can handle both standard difficulty "
    "levels (easy, medium, hard) and custom difficulty descriptions."
)

QUALITY_REQUIREMENTS = """QUALITY REQUIREMENTS:
- Question must be factual and verifiable from reliable sources
- All answer options must be plausible but only one correct
- Avoid ambiguous wording, trick questions, or subjective opinions
- Use clear, concise language appropriate for the difficulty level
- Keep questions under 150 characters when possible
- Keep individual answers under 100 characters when possible
- Ensure answer options are roughly similar in length and style
- Avoid questions that require external context or recent events
- Use specific, concrete facts rather than vague generalizations"""

DIFFICULTY_GUIDELINES = """DIFFICULTY GUIDELINES:
- "easy": Basic knowledge, widely known facts, general awareness
- "medium": Requires some specific knowledge, reasoning, or context
- "hard": Specialized knowledge, complex reasoning, or obscure facts required
- Custom levels: Match the specified expertise level exactly"""

ERROR_CONTRACT = """ERROR HANDLING:
If you cannot generate a valid question for any reason (topic too specific, difficulty too complex, etc.), respond with this exact JSON structure:
{{
  "question": null,
  "answers": [],
  "explanation": "Unable to generate question for this topic/difficulty combination"{mapped_null}
}}"""


def clamp_answer_count(answer_count: int) -> int:
    """Clamp the number of answer options to the supported range."""
    return max(MIN_ANSWER_COUNT, min(MAX_ANSWER_COUNT, answer_count))


def _describe_difficulty(difficulty: str) -> str:
    if is_custom_difficulty(difficulty):
        return extract_custom_difficulty_text(difficulty)
    return difficulty


def _build_exclusion_section(exclude_questions: Optional[Sequence[str]]) -> str:
    if not exclude_questions:
        return ""
    recent: List[str] = [q.strip() for q in exclude_questions if q and q.strip()]
    if not recent:
        return ""
    lines = "\n".join(f"- {q}" for q in recent[-MAX_EXCLUDED_QUESTIONS:])
    return (
        "\nDO NOT REPEAT these previously asked questions "
        "(or close paraphrases of them):\n"
        f"{lines}\n"
    )


def build_generation_prompt(
    topic: str,
    difficulty: str,
    answer_count: int = 4,
    exclude_questions: Optional[Sequence[str]] = None,
) -> str:
    """Build the prompt for generating one trivia question.

    Args:
        topic: Question topic
        difficulty: "easy", "medium", "hard" or "custom:<description>"
        answer_count: Number of answer options (clamped to 3-5)
        exclude_questions: Question texts the model must not repeat

    Returns:
        Complete prompt string
    """
    count = clamp_answer_count(answer_count)
    custom = is_custom_difficulty(difficulty)
    wrong_answers = ", ".join(
        f'"<plausible wrong answer {i + 1}>"' for i in range(count - 1)
    )

    mapping_section = ""
    mapped_field = ""
    mapped_null = ""
    if custom:
        levels = "|".join(level.value for level in DifficultyLevel)
        mapping_section = (
            "\nDIFFICULTY MAPPING:\n"
            "Since this is a custom difficulty, map it to one of the standard "
            "difficulty levels (easy, medium, hard) based on the complexity and "
            "expertise level required. Include this mapping in your response.\n"
        )
        mapped_field = f',\n  "mappedDifficulty": "<{levels}>"'
        mapped_null = ',\n  "mappedDifficulty": null'

    return f"""Generate a high-quality trivia question about "{topic}" with difficulty level: "{_describe_difficulty(difficulty)}".

{QUALITY_REQUIREMENTS}

{DIFFICULTY_GUIDELINES}

ANSWER DISTRIBUTION:
- Generate exactly {count} answer options
- Make incorrect answers plausible but clearly wrong to someone with the appropriate knowledge level
- Put the correct answer first in the answers array (answers are shuffled later)
- Avoid using "all of the above" or "none of the above" as answer options
{mapping_section}{_build_exclusion_section(exclude_questions)}
Respond in the following JSON format with exactly {count} answer options:
{{
  "question": "<clear, well-formed question ending with ?>",
  "answers": ["<correct answer first>", {wrong_answers}],
  "explanation": "<brief explanation of why the correct answer is right>"{mapped_field}
}}

IMPORTANT: Only respond with valid JSON. Do not include any additional text, formatting, or explanations outside the JSON structure.

{ERROR_CONTRACT.format(mapped_null=mapped_null)}"""
