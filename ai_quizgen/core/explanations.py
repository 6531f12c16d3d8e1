"""AI explanations for answered quiz questions."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Union

from .errors import GeminiAPIError
from .generator import iso_timestamp, text_request
from .orchestrator import GeminiOrchestrator
from .types import (
    ExplanationResult,
    GeneratedQuestion,
    MultiChoiceQuestion,
    SingleChoiceQuestion,
    TextInputQuestion,
)

logger = logging.getLogger(__name__)

NO_EXPLANATION = "No explanation available."
NOT_PROVIDED = "Not provided"
INVALID_OPTION = "Invalid option"

INCORRECT_ANSWER_TEMPLATE = """A student answered a quiz question incorrectly. Please provide a clear, educational explanation.

Question: {question}
{options}
Student's Answer: {user_answer}
Correct Answer: {correct_answer}

Please provide:
1. Why the student's answer is incorrect
2. Why the correct answer is right
3. Key concepts the student should understand
4. A brief, encouraging note

Keep the explanation concise but thorough, suitable for learning. Be supportive and educational.

Format your response as plain text, no special formatting needed."""

CORRECT_ANSWER_TEMPLATE = """A student answered a quiz question correctly. Please provide a brief, positive explanation that reinforces their understanding.

Question: {question}
{options}
Student's Answer: {user_answer}
Correct Answer: {correct_answer}

Please provide:
1. Confirmation that their answer is correct
2. Brief explanation of why it's correct
3. Any additional insight or related concepts
4. Positive reinforcement

Keep it concise and encouraging.

Format your response as plain text, no special formatting needed."""

GENERAL_TEMPLATE = """Please provide a detailed explanation for this quiz question and its answer.

Question: {question}
{options}
Correct Answer: {correct_answer}

Please explain:
1. The reasoning behind the correct answer
2. Key concepts involved
3. Why other options (if any) are incorrect
4. Any helpful context or examples

Make it educational and clear for students.

Format your response as plain text, no special formatting needed."""

_EMPHASIS = re.compile(r"(?<!\w)(\*\*|__|\*|_)(\S(?:.*?\S)?)\1(?!\w)")
_HEADER = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]*", re.MULTILINE)
_EXTRA_BLANK_LINES = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


def format_options(options: list[str]) -> str:
    if not options:
        return ""
    lines = [f"{chr(65 + index)}. {option}" for index, option in enumerate(options)]
    return "Options:\n" + "\n".join(lines)


def _option_text(options: list[str], index: Any) -> str:
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(options):
        return options[index]
    return INVALID_OPTION


def correct_answer_text(question: GeneratedQuestion) -> str:
    if isinstance(question, SingleChoiceQuestion):
        return _option_text(question.options, question.correct_index)
    if isinstance(question, MultiChoiceQuestion):
        return ", ".join(_option_text(question.options, i) for i in question.correct_indices)
    if isinstance(question, TextInputQuestion):
        return question.expected
    return "Unknown"


def user_answer_text(question: GeneratedQuestion, user_answer: Any) -> str:
    if user_answer is None:
        return NOT_PROVIDED
    if isinstance(question, SingleChoiceQuestion):
        if isinstance(user_answer, int) and not isinstance(user_answer, bool):
            return _option_text(question.options, user_answer)
        return str(user_answer)
    if isinstance(question, MultiChoiceQuestion):
        if not isinstance(user_answer, (list, tuple)):
            return NOT_PROVIDED
        return ", ".join(_option_text(question.options, i) for i in user_answer) or NOT_PROVIDED
    return str(user_answer) or NOT_PROVIDED


def build_prompt(
    template: str, question: GeneratedQuestion, user_answer: Any = None
) -> str:
    options = getattr(question, "options", None) or []
    return template.format(
        question=question.prompt,
        options=format_options(options),
        user_answer=user_answer_text(question, user_answer),
        correct_answer=correct_answer_text(question),
    )


def clean_explanation(text: Any) -> str:
    """Strip Markdown emphasis and headers and squeeze runs of blank lines."""
    if not isinstance(text, str) or not text.strip():
        return NO_EXPLANATION
    cleaned = _HEADER.sub("", text.strip())
    cleaned = _EMPHASIS.sub(r"\2", cleaned)
    cleaned = _EXTRA_BLANK_LINES.sub("\n\n", cleaned)
    return cleaned.strip() or NO_EXPLANATION


def fallback_explanation(question: GeneratedQuestion, is_correct: bool) -> str:
    if question.explanation:
        return question.explanation
    if is_correct:
        return "Correct! Your answer is right."
    if isinstance(question, MultiChoiceQuestion):
        return f"That's not quite right. The correct answers are: {correct_answer_text(question)}"
    return f"That's not quite right. The correct answer is: {correct_answer_text(question)}"


class ExplanationService:
    """Asks the model to explain an answered question.

    Every call issues a fresh request; failures return the question's own
    explanation (or a generic one) with ``success=False``.
    """

    def __init__(
        self,
        orchestrator: GeminiOrchestrator,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self._clock = clock

    async def generate_explanation(
        self, question: GeneratedQuestion, user_answer: Any, is_correct: bool
    ) -> ExplanationResult:
        template = CORRECT_ANSWER_TEMPLATE if is_correct else INCORRECT_ANSWER_TEMPLATE
        prompt = build_prompt(template, question, user_answer)
        outcome = await self._request(prompt)
        if isinstance(outcome, ExplanationResult):
            return outcome
        return ExplanationResult(
            success=False,
            explanation=fallback_explanation(question, is_correct),
            generated_at=iso_timestamp(self._clock()),
            error=outcome,
        )

    async def generate_general_explanation(self, question: GeneratedQuestion) -> ExplanationResult:
        prompt = build_prompt(GENERAL_TEMPLATE, question)
        outcome = await self._request(prompt)
        if isinstance(outcome, ExplanationResult):
            return outcome
        return ExplanationResult(
            success=False,
            explanation=question.explanation or NO_EXPLANATION,
            generated_at=iso_timestamp(self._clock()),
            error=outcome,
        )

    async def _request(self, prompt: str) -> Union[ExplanationResult, str]:
        """Return a successful result, or the error message on failure."""
        try:
            response = await self.orchestrator.submit(text_request(prompt))
            text = self.orchestrator.extract_text(response)
        except GeminiAPIError as e:
            logger.error("Explanation generation failed: %s", e.message)
            return e.message
        except Exception as e:
            logger.exception("Unexpected explanation failure")
            return str(e) or "Failed to generate explanation"
        return ExplanationResult(
            success=True,
            explanation=clean_explanation(text),
            generated_at=iso_timestamp(self._clock()),
        )
