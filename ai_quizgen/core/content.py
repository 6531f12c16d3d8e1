"""Source text cleanup and generation option normalization."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any, Union

from .types import (
    DIFFICULTIES,
    QUESTION_TYPES,
    SINGLE_CHOICE,
    GenerationOptions,
    canonical_question_type,
)

MAX_CONTENT_LENGTH = 8000
MIN_QUESTIONS = 1
MAX_QUESTIONS = 20
DEFAULT_QUESTION_COUNT = 5

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9\s.,!?;:()\-\"']")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def preprocess_content(content: Any, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Normalize raw text before it is embedded in a prompt.

    Returns an empty string for non-string or blank input. Disallowed
    characters become spaces and runs of whitespace collapse to one space,
    so applying the function twice gives the same result as applying it once.
    Over-long text is cut to ``max_length`` and, when a period falls in the
    last fifth of what remains, cut again just after that period.
    """
    if not isinstance(content, str) or not content:
        return ""

    processed = _WHITESPACE.sub(" ", content)
    processed = _DISALLOWED.sub(" ", processed)
    processed = _WHITESPACE.sub(" ", processed).strip()

    if len(processed) > max_length:
        processed = processed[:max_length]
        last_period = processed.rfind(".")
        if last_period > max_length * 0.8:
            processed = processed[: last_period + 1]
        processed = processed.strip()

    return processed


def parse_int(value: Any) -> Union[int, None]:
    """Lenient integer parse: ``3``, ``3.7``, ``"3"`` and ``" 3 apples"`` all give 3."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def normalize_options(
    options: Union[GenerationOptions, Mapping[str, Any], None] = None,
    min_questions: int = MIN_QUESTIONS,
    max_questions: int = MAX_QUESTIONS,
) -> GenerationOptions:
    """Clamp the question count and drop unknown question types.

    Accepts a ``GenerationOptions`` or a mapping using either snake_case or
    camelCase keys. Normalizing an already normalized value is a no-op.
    """
    if isinstance(options, GenerationOptions):
        raw_count: Any = options.question_count
        raw_types: Any = options.question_types
        raw_difficulty: Any = options.difficulty
    else:
        options = options or {}
        raw_count = options.get("question_count", options.get("questionCount"))
        raw_types = options.get("question_types", options.get("questionTypes"))
        raw_difficulty = options.get("difficulty")

    count = parse_int(raw_count)
    if count is None:
        count = DEFAULT_QUESTION_COUNT
    count = max(min_questions, min(max_questions, count))

    if isinstance(raw_types, str):
        raw_types = [raw_types]
    requested: set[str] = set()
    if isinstance(raw_types, Iterable):
        for raw_type in raw_types:
            tag = canonical_question_type(raw_type)
            if tag:
                requested.add(tag)
    types = [tag for tag in QUESTION_TYPES if tag in requested]
    if not types:
        types = [SINGLE_CHOICE]

    difficulty = raw_difficulty.strip().lower() if isinstance(raw_difficulty, str) else ""
    if difficulty not in DIFFICULTIES:
        difficulty = "mixed"

    return GenerationOptions(question_count=count, question_types=types, difficulty=difficulty)
