from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Union

from .config import DEFAULT_SETTINGS, GeminiSettings
from .content import normalize_options, preprocess_content
from .errors import GeminiAPIError
from .orchestrator import GeminiOrchestrator
from .prompt import PromptContext, render_prompt
from .question_parser import build_questions, parse_question_list
from .types import QUESTION_TYPES, GenerationMetadata, GenerationOptions, GenerationResult

logger = logging.getLogger(__name__)

CONNECTION_PROMPT = 'Hello, please respond with "OK"'


def text_request(prompt: str) -> dict[str, Any]:
    return {"contents": [{"parts": [{"text": prompt}]}]}


def iso_timestamp(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


class QuizGenerator:
    """Turns source text into validated quiz questions, one request per call."""

    def __init__(
        self,
        orchestrator: GeminiOrchestrator,
        settings: GeminiSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self.settings = settings
        self._clock = clock

    async def generate(
        self,
        content: Any,
        options: Union[GenerationOptions, Mapping[str, Any], None] = None,
    ) -> GenerationResult:
        """Generate questions from ``content``.

        Never raises: every failure is returned as ``success=False`` with the
        error message and no questions.
        """
        try:
            return await self._generate(content, options)
        except GeminiAPIError as e:
            logger.error("Quiz generation failed: %s", e.message)
            return GenerationResult(success=False, error=e.message)
        except ValueError as e:
            logger.error("Quiz generation failed: %s", e)
            return GenerationResult(success=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected quiz generation failure")
            return GenerationResult(success=False, error=str(e) or "Failed to generate questions")

    async def _generate(
        self,
        content: Any,
        options: Union[GenerationOptions, Mapping[str, Any], None],
    ) -> GenerationResult:
        processed = preprocess_content(content, self.settings.max_content_length)
        if not processed:
            raise ValueError("Content is empty or invalid")

        normalized = normalize_options(
            options, self.settings.min_questions, self.settings.max_questions
        )
        prompt = render_prompt(
            PromptContext(
                content=processed,
                question_count=normalized.question_count,
                question_types=normalized.question_types,
                difficulty=normalized.difficulty,
            )
        )

        logger.info(
            "Requesting %d question(s) of type %s from %d chars of content",
            normalized.question_count,
            ",".join(normalized.question_types),
            len(processed),
        )
        response = await self.orchestrator.submit(text_request(prompt))
        text = self.orchestrator.extract_text(response)

        raw_questions = parse_question_list(text)
        questions = build_questions(raw_questions, int(self._clock() * 1000))
        if not questions:
            raise ValueError("No valid questions could be generated")
        if len(questions) < len(raw_questions):
            logger.warning(
                "Kept %d of %d generated questions", len(questions), len(raw_questions)
            )

        return GenerationResult(
            success=True,
            questions=questions,
            metadata=GenerationMetadata(
                source_length=len(content),
                processed_length=len(processed),
                requested_count=normalized.question_count,
                generated_count=len(questions),
                question_types=list(normalized.question_types),
                difficulty=normalized.difficulty,
                generated_at=iso_timestamp(self._clock()),
            ),
        )

    def capabilities(self) -> dict[str, Any]:
        return {
            "max_content_length": self.settings.max_content_length,
            "max_questions": self.settings.max_questions,
            "min_questions": self.settings.min_questions,
            "supported_types": list(QUESTION_TYPES),
            "key_status": asdict(self.orchestrator.key_status()),
        }

    async def test_connection(self) -> bool:
        """True when the model answers a trivial prompt with something containing "ok"."""
        try:
            response = await self.orchestrator.submit(text_request(CONNECTION_PROMPT))
            text = self.orchestrator.extract_text(response)
        except GeminiAPIError as e:
            logger.error("AI service test failed: %s", e.message)
            return False
        return "ok" in text.lower()
