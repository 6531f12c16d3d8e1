from __future__ import annotations

import os
from typing import Any, Union

import httpx

from ..core.errors import NetworkError, RequestTimeoutError
from .base import TransportResponse

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiTransport:
    """Single-shot POST to the generateContent endpoint.

    HTTP error statuses are returned, not raised; only transport-level
    failures (connect errors, timeouts) raise.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        transport: Union[httpx.AsyncBaseTransport, None] = None,
    ) -> None:
        self.base_url = base_url
        proxy = os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if transport is not None:
            self.client = httpx.AsyncClient(base_url=base_url, transport=transport)
        elif proxy:
            self.client = httpx.AsyncClient(base_url=base_url, proxy=proxy)
        else:
            self.client = httpx.AsyncClient(base_url=base_url)

    async def post(
        self, model: str, body: dict[str, Any], api_key: str, timeout: float = 30.0
    ) -> TransportResponse:
        url = f"/{model}:generateContent"
        headers = {"Content-Type": "application/json"}
        try:
            response = await self.client.post(
                url,
                json=body,
                headers=headers,
                params={"key": api_key},
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Request timeout") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Gemini API request failed for model '{model}': {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        return TransportResponse(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            data=data,
            text=response.text,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
