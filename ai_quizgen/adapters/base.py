from __future__ import annotations

from typing import Any, Protocol, TypedDict, Union


class TransportResponse(TypedDict):
    status_code: int
    headers: dict[str, str]
    data: Union[Any, None]
    text: str


class Transport(Protocol):
    async def post(
        self, model: str, body: dict[str, Any], api_key: str, timeout: float
    ) -> TransportResponse: ...


class KeyStore(Protocol):
    def get_preferences(self) -> Union[dict[str, Any], None]: ...

    def store_preferences(self, doc: dict[str, Any]) -> None: ...


class EnvSource(Protocol):
    def load(self) -> None: ...

    def get(self, name: str) -> Union[str, None]: ...


class ErrorSink(Protocol):
    def report(self, error: BaseException, context: str = "") -> Any: ...


class QuotaSink(Protocol):
    def update(
        self,
        service: str,
        remaining: Union[int, None] = None,
        limit: Union[int, None] = None,
        reset_time: Union[int, None] = None,
        usage: Union[float, None] = None,
    ) -> Any: ...

    def handle_exceeded(
        self,
        service: str,
        reset_time: Union[int, None] = None,
        retry_after: Union[str, None] = None,
    ) -> None: ...
