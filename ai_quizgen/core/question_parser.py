"""Parse model replies into validated quiz questions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .content import parse_int
from .types import (
    MULTI_CHOICE,
    SINGLE_CHOICE,
    GeneratedQuestion,
    MultiChoiceQuestion,
    SingleChoiceQuestion,
    TextInputQuestion,
    canonical_question_type,
)

logger = logging.getLogger(__name__)

NO_EXPLANATION = "No explanation provided."
PARSE_FAILURE_MESSAGE = "Failed to parse AI response. Please try again."

_LEADING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")


class ResponseParseError(ValueError):
    pass


def strip_code_fences(text: str) -> str:
    trimmed = text.strip()
    trimmed = _LEADING_FENCE.sub("", trimmed)
    trimmed = _TRAILING_FENCE.sub("", trimmed)
    return trimmed.strip()


def parse_json_object(text: str) -> Union[Any, None]:
    """Parse the reply as JSON, falling back to the outermost {...} span."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                return None
        return None


def parse_question_list(text: str) -> list[Any]:
    data = parse_json_object(strip_code_fences(text))
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        logger.error("AI response did not contain a questions array: %.200s", text)
        raise ResponseParseError(PARSE_FAILURE_MESSAGE)
    return data["questions"]


class RawQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    question: str
    explanation: str = NO_EXPLANATION

    @field_validator("question", mode="before")
    @classmethod
    def clean_question(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Question text is required")
        cleaned = value.strip()
        if len(cleaned) < 10:
            raise ValueError("Question text is too short")
        return cleaned

    @field_validator("explanation", mode="before")
    @classmethod
    def clean_explanation(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return NO_EXPLANATION


class RawChoiceQuestion(RawQuestion):
    options: list[str]

    @field_validator("options", mode="before")
    @classmethod
    def clean_options(cls, value: Any) -> list[str]:
        if not isinstance(value, list) or len(value) < 2:
            raise ValueError("At least 2 options are required")
        cleaned = [opt.strip() for opt in value if isinstance(opt, str) and opt.strip()]
        if len(cleaned) < 2:
            raise ValueError("At least 2 valid options are required")
        return cleaned


class RawSingleChoice(RawChoiceQuestion):
    correct_answer: int = Field(alias="correctAnswer")

    @field_validator("correct_answer", mode="before")
    @classmethod
    def parse_answer(cls, value: Any) -> int:
        index = parse_int(value)
        if index is None:
            raise ValueError("Invalid correct answer index")
        return index

    @model_validator(mode="after")
    def check_answer_range(self) -> RawSingleChoice:
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError("Invalid correct answer index")
        return self


class RawMultiChoice(RawChoiceQuestion):
    correct_answers: list[int] = Field(alias="correctAnswers")

    @field_validator("correct_answers", mode="before")
    @classmethod
    def parse_answers(cls, value: Any) -> list[int]:
        if not isinstance(value, list) or not value:
            raise ValueError("At least one correct answer is required")
        parsed = (parse_int(answer) for answer in value)
        return [index for index in parsed if index is not None]

    @model_validator(mode="after")
    def check_answer_range(self) -> RawMultiChoice:
        valid = sorted({i for i in self.correct_answers if 0 <= i < len(self.options)})
        if not valid:
            raise ValueError("No valid correct answers provided")
        self.correct_answers = valid
        return self


class RawTextInput(RawQuestion):
    correct_answer: str = Field(alias="correctAnswer")
    case_sensitive: bool = Field(default=False, alias="caseSensitive")

    @field_validator("correct_answer", mode="before")
    @classmethod
    def clean_answer(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Answer text is required")
        return value.strip()

    @field_validator("case_sensitive", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)


def build_question(raw: Any, index: int, timestamp_ms: int) -> GeneratedQuestion:
    """Validate one raw question; raises ``ValueError`` when it is unusable."""
    if not isinstance(raw, dict):
        raise ValueError("Question must be a JSON object")

    question_type = canonical_question_type(raw.get("type")) or SINGLE_CHOICE
    question_id = f"ai_q_{timestamp_ms}_{index}"

    if question_type == SINGLE_CHOICE:
        single = RawSingleChoice.model_validate(raw)
        return SingleChoiceQuestion(
            id=question_id,
            prompt=single.question,
            options=single.options,
            correct_index=single.correct_answer,
            explanation=single.explanation,
        )
    if question_type == MULTI_CHOICE:
        multi = RawMultiChoice.model_validate(raw)
        return MultiChoiceQuestion(
            id=question_id,
            prompt=multi.question,
            options=multi.options,
            correct_indices=multi.correct_answers,
            explanation=multi.explanation,
        )
    text = RawTextInput.model_validate(raw)
    return TextInputQuestion(
        id=question_id,
        prompt=text.question,
        expected=text.correct_answer,
        case_sensitive=text.case_sensitive,
        explanation=text.explanation,
    )


def build_questions(raw_questions: list[Any], timestamp_ms: int) -> list[GeneratedQuestion]:
    """Validate every raw question, skipping (and logging) the invalid ones.

    Ids share ``timestamp_ms`` across the batch; the index suffix keeps them unique.
    """
    questions: list[GeneratedQuestion] = []
    for index, raw in enumerate(raw_questions):
        try:
            questions.append(build_question(raw, index, timestamp_ms))
        except ValidationError as e:
            reasons = "; ".join(err["msg"] for err in e.errors())
            logger.warning("Skipping invalid question %d: %s", index + 1, reasons)
        except ValueError as e:
            logger.warning("Skipping invalid question %d: %s", index + 1, e)
    return questions
