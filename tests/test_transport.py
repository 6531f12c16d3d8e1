import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from ai_quizgen.adapters.gemini_transport import GeminiTransport
from ai_quizgen.adapters.mock_transport import MockTransport
from ai_quizgen.core.errors import NetworkError, RequestTimeoutError
from ai_quizgen.core.orchestrator import GeminiOrchestrator


def test_post_builds_generate_content_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]},
            headers={"X-RateLimit-Remaining": "5"},
        )

    async def _run():
        transport = GeminiTransport(transport=httpx.MockTransport(handler))
        try:
            return await transport.post("gemini-1.5-flash", {"contents": []}, "secret")
        finally:
            await transport.aclose()

    response = asyncio.run(_run())
    assert seen["method"] == "POST"
    assert seen["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-1.5-flash:generateContent?key=secret"
    )
    assert seen["content_type"] == "application/json"
    assert seen["body"] == {"contents": []}
    assert response["status_code"] == 200
    assert response["headers"]["x-ratelimit-remaining"] == "5"
    assert response["data"]["candidates"][0]["content"]["parts"][0]["text"] == "ok"


def test_error_status_is_returned_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="<html>unavailable</html>")

    async def _run():
        transport = GeminiTransport(transport=httpx.MockTransport(handler))
        try:
            return await transport.post("m", {}, "k")
        finally:
            await transport.aclose()

    response = asyncio.run(_run())
    assert response["status_code"] == 503
    assert response["data"] is None
    assert "unavailable" in response["text"]


@pytest.mark.parametrize(
    "exc, expected",
    [
        (httpx.ReadTimeout("slow"), RequestTimeoutError),
        (httpx.ConnectError("refused"), NetworkError),
    ],
)
def test_transport_failures_are_classified(exc, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    async def _run():
        transport = GeminiTransport(transport=httpx.MockTransport(handler))
        try:
            await transport.post("m", {}, "k")
        finally:
            await transport.aclose()

    with pytest.raises(expected):
        asyncio.run(_run())


def test_orchestrator_over_http_transport():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "hi"}]}}]})

    async def _run():
        orchestrator = GeminiOrchestrator(
            transport=GeminiTransport(transport=httpx.MockTransport(handler)),
            api_key="http-key-1234",
        )
        try:
            response = await orchestrator.submit({"contents": [{"parts": [{"text": "x"}]}]})
            return orchestrator.extract_text(response)
        finally:
            await orchestrator.aclose()

    assert asyncio.run(_run()) == "hi"
    assert len(calls) == 1
    assert calls[0].url.params["key"] == "http-key-1234"


def test_mock_transport_records_calls():
    transport = MockTransport(text="canned")
    response = asyncio.run(transport.post("model-x", {"a": 1}, "key"))
    assert response["status_code"] == 200
    assert response["data"]["candidates"][0]["content"]["parts"][0]["text"] == "canned"
    assert transport.calls == [{"model": "model-x", "body": {"a": 1}}]
