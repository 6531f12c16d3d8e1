from __future__ import annotations

import json
from typing import Any

from .base import TransportResponse

MOCK_QUESTIONS = {
    "questions": [
        {
            "type": "single-choice",
            "question": "Which statement best summarizes the provided text?",
            "options": [
                "It describes the main topic",
                "It is unrelated to the topic",
                "It contains no information",
                "It is a list of numbers",
            ],
            "correctAnswer": 0,
            "explanation": "Mock response.",
        }
    ]
}


class MockTransport:
    """Transport that returns canned responses for testing and offline use."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text if text is not None else json.dumps(MOCK_QUESTIONS)
        self.calls: list[dict[str, Any]] = []

    async def post(
        self, model: str, body: dict[str, Any], api_key: str, timeout: float = 30.0
    ) -> TransportResponse:
        self.calls.append({"model": model, "body": body})
        return TransportResponse(
            status_code=200,
            headers={},
            data={"candidates": [{"content": {"parts": [{"text": self.text}]}}]},
            text="",
        )
