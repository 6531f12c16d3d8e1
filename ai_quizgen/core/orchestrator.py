"""Single-flight, retrying client for the Gemini generateContent API.

Requests are queued FIFO and dispatched one at a time. A request that fails
with a retryable error goes back to the head of the queue and is retried
with exponential backoff before any newer request is sent.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..adapters.base import EnvSource, ErrorSink, KeyStore, QuotaSink, Transport, TransportResponse
from ..adapters.gemini_transport import GeminiTransport
from ..adapters.preferences_store import default_preferences
from .config import DEFAULT_SETTINGS, GeminiSettings
from .errors import (
    ErrorKind,
    GeminiAPIError,
    InvalidKeyError,
    InvalidResponseError,
    NetworkError,
    QueueClearedError,
    QueueFullError,
    QuotaExceededError,
    RateLimitedError,
    RequestTimeoutError,
    ServiceUnavailableError,
    is_retryable,
)
from .telemetry import ErrorReporter, QuotaMonitor
from .types import KeyStatus, QueueStatus

logger = logging.getLogger(__name__)

ENV_KEY_NAME = "GEMINI_API_KEY"
PROBE_BODY = {"contents": [{"parts": [{"text": "Hello"}]}]}
CONNECTION_TEST_BODY = {"contents": [{"parts": [{"text": "Hello, this is a test."}]}]}


def is_valid_response(response: Any) -> bool:
    if not isinstance(response, dict):
        return False
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return False
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    return isinstance(parts, list) and len(parts) > 0


def extract_text(response: Any) -> str:
    """Concatenate every text part of the first candidate."""
    if not is_valid_response(response):
        raise InvalidResponseError("Invalid response format")
    parts = response["candidates"][0]["content"]["parts"]
    texts = []
    for part in parts:
        text = part.get("text") if isinstance(part, dict) else None
        texts.append(text if isinstance(text, str) else "")
    return "".join(texts)


def _header_int(headers: dict[str, str], name: str) -> Union[int, None]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


@dataclass(eq=False)
class QueueItem:
    id: str
    body: dict[str, Any]
    future: asyncio.Future
    enqueued_at: float
    retry_count: int = 0


class GeminiOrchestrator:
    """Owns the API key, the request queue and the rate-limit deadline."""

    def __init__(
        self,
        transport: Union[Transport, None] = None,
        key_store: Union[KeyStore, None] = None,
        env_source: Union[EnvSource, None] = None,
        error_sink: Union[ErrorSink, None] = None,
        quota_sink: Union[QuotaSink, None] = None,
        settings: GeminiSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        api_key: Union[str, None] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport or GeminiTransport(settings.base_url)
        self.key_store = key_store
        self.env_source = env_source
        self.error_sink = error_sink or ErrorReporter()
        self.quota_sink = quota_sink or QuotaMonitor(
            settings.quota_warning_threshold, settings.quota_critical_threshold
        )
        self._clock = clock
        self._sleep = sleep
        self._api_key: Union[str, None] = api_key
        self._queue: deque[QueueItem] = deque()
        self._processing = False
        self._processor: Union[asyncio.Task, None] = None
        self._rate_limit_until = 0.0
        self._reset_waiters: set[asyncio.Event] = set()
        self._in_flight = asyncio.Lock()
        self._backoff = wait_exponential(multiplier=settings.retry_delay, exp_base=2)
        if not self._api_key:
            self.initialize_key()

    def initialize_key(self) -> None:
        """Load the key from the environment, falling back to stored preferences."""
        if self.env_source is not None:
            try:
                self.env_source.load()
                env_key = self.env_source.get(ENV_KEY_NAME)
            except Exception as e:
                logger.warning("Failed to load environment variables: %s", e)
                env_key = None
            if env_key:
                self._api_key = env_key
                return

        if self.key_store is not None:
            try:
                doc = self.key_store.get_preferences()
            except Exception as e:
                logger.warning("Failed to load API key from storage: %s", e)
                return
            api_keys = (doc or {}).get("apiKeys")
            if isinstance(api_keys, dict) and api_keys.get("gemini"):
                self._api_key = api_keys["gemini"]

    async def set_key(self, candidate: Any) -> bool:
        """Validate ``candidate`` with a probe request and store it if it works."""
        if not isinstance(candidate, str) or not candidate.strip():
            raise InvalidKeyError("Invalid API key format")

        try:
            await self._send(PROBE_BODY, candidate)
        except GeminiAPIError as e:
            logger.warning("API key validation failed: %s", e.message)
            return False

        self._api_key = candidate
        self._persist_key(candidate)
        return True

    def _persist_key(self, key: str) -> None:
        if self.key_store is None:
            return
        try:
            doc = self.key_store.get_preferences() or default_preferences()
            if not isinstance(doc.get("apiKeys"), dict):
                doc["apiKeys"] = {}
            doc["apiKeys"]["gemini"] = key
            self.key_store.store_preferences(doc)
        except Exception as e:
            logger.warning("Failed to save API key to storage: %s", e)
            self.error_sink.report(e, "Gemini API Key Storage")

    def key_status(self) -> KeyStatus:
        return KeyStatus(
            has_key=bool(self._api_key),
            is_valid=bool(self._api_key),
            key_preview=f"{self._api_key[:8]}..." if self._api_key else None,
        )

    def submit(self, body: dict[str, Any]) -> asyncio.Future:
        """Queue ``body`` for dispatch and return a future for the response.

        Admission failures (no key, active rate limit, full queue) raise
        immediately instead of failing the future.
        """
        if not self._api_key:
            raise InvalidKeyError("API key not set. Please configure your Gemini API key.")

        now = self._clock()
        if now < self._rate_limit_until:
            wait = math.ceil(self._rate_limit_until - now)
            raise RateLimitedError(f"Rate limited. Please wait {wait} seconds.")

        if len(self._queue) >= self.settings.max_queue_size:
            raise QueueFullError("Request queue is full. Please try again later.")

        loop = asyncio.get_running_loop()
        item = QueueItem(
            id=f"req_{int(now * 1000)}_{uuid.uuid4().hex[:9]}",
            body=body,
            future=loop.create_future(),
            enqueued_at=now,
        )
        self._queue.append(item)
        logger.debug("Queued request %s (queue length %d)", item.id, len(self._queue))
        self._start_processing(loop)
        return item.future

    def _start_processing(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._processing or not self._queue:
            return
        self._processing = True
        self._processor = loop.create_task(self._process_queue())

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                wait = self._rate_limit_remaining()
                if wait > 0:
                    logger.info("Rate limited; resuming queue in %.1fs", wait)
                    await self._cooldown_sleep(wait)
                    continue

                item = self._queue.popleft()
                await self._dispatch(item)

                if self._queue:
                    await self._sleep(self.settings.request_pacing)
        finally:
            self._processing = False

    async def _dispatch(self, item: QueueItem) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=self._retry_wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=lambda state: self._requeue(item, state),
            sleep=self._cooldown_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if item.retry_count and not self._reclaim(item):
                        return
                    response = await self._execute(item)
        except GeminiAPIError as error:
            self._settle(item, error=error)
        except Exception as error:
            logger.exception("Unexpected failure while dispatching %s", item.id)
            wrapped = NetworkError(f"Unexpected request failure: {error}")
            wrapped.request_id = item.id
            wrapped.retry_count = item.retry_count
            self._settle(item, error=wrapped)
        else:
            self._settle(item, response=response)

    async def _execute(self, item: QueueItem) -> dict[str, Any]:
        try:
            return await self._send(item.body, self._api_key or "")
        except GeminiAPIError as error:
            error.request_id = item.id
            error.retry_count = item.retry_count
            logger.warning(
                "Request %s failed on attempt %d: %s", item.id, item.retry_count + 1, error.message
            )
            raise

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        return max(self._backoff(retry_state), self._rate_limit_remaining())

    def _requeue(self, item: QueueItem, retry_state: RetryCallState) -> None:
        item.retry_count = retry_state.attempt_number
        self._queue.appendleft(item)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            "Retrying request %s in %.1fs (retry %d of %d)",
            item.id,
            delay,
            item.retry_count,
            self.settings.max_retries,
        )

    def _reclaim(self, item: QueueItem) -> bool:
        try:
            self._queue.remove(item)
        except ValueError:
            return False
        return True

    @staticmethod
    def _settle(
        item: QueueItem,
        response: Union[dict[str, Any], None] = None,
        error: Union[GeminiAPIError, None] = None,
    ) -> None:
        if item.future.done():
            return
        if error is not None:
            item.future.set_exception(error)
        else:
            item.future.set_result(response)

    def _rate_limit_remaining(self) -> float:
        return max(0.0, self._rate_limit_until - self._clock())

    async def _cooldown_sleep(self, delay: float) -> None:
        """Sleep for ``delay``, waking early if the rate limit is reset meanwhile."""
        if self._rate_limit_remaining() <= 0:
            await self._sleep(delay)
            return

        reset = asyncio.Event()
        self._reset_waiters.add(reset)
        sleeper = asyncio.ensure_future(self._sleep(delay))
        woken = asyncio.ensure_future(reset.wait())
        try:
            await asyncio.wait({sleeper, woken}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._reset_waiters.discard(reset)
            sleeper.cancel()
            woken.cancel()
        if sleeper.done() and not sleeper.cancelled():
            sleeper.result()

    async def _send(self, body: dict[str, Any], api_key: str) -> dict[str, Any]:
        timeout = self.settings.request_timeout
        async with self._in_flight:
            try:
                response = await asyncio.wait_for(
                    self.transport.post(self.settings.model, body, api_key, timeout),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise RequestTimeoutError("Request timeout") from e
            except NetworkError as error:
                self.error_sink.report(error, "Gemini API Network")
                raise
        return self._classify(response)

    def _classify(self, response: TransportResponse) -> dict[str, Any]:
        status = response["status_code"]
        headers = response["headers"]
        if 200 <= status < 300:
            self._update_quota(headers)
            data = response["data"]
            if not is_valid_response(data):
                error = InvalidResponseError("Invalid response format from API", status_code=status)
                self.error_sink.report(error, "Gemini API Response Validation")
                raise error
            return data
        raise self._http_error(response)

    def _http_error(self, response: TransportResponse) -> GeminiAPIError:
        status = response["status_code"]
        headers = response["headers"]
        message = self._error_message(response)
        service = self.settings.service_name
        error: GeminiAPIError

        if status == 400:
            if "api key" in message.lower():
                error = InvalidKeyError(
                    "Invalid API key. Please check your Gemini API key.", status_code=status
                )
                self.error_sink.report(error, "Gemini API Authentication")
            else:
                error = NetworkError(message, status_code=status)
        elif status == 401:
            error = InvalidKeyError("Unauthorized. Please check your API key.", status_code=status)
            self.error_sink.report(error, "Gemini API Authentication")
        elif status == 403:
            error = QuotaExceededError("API quota exceeded or access denied.", status_code=status)
            self.quota_sink.handle_exceeded(
                service, reset_time=_header_int(headers, "x-ratelimit-reset")
            )
        elif status == 429:
            error = RateLimitedError(message, status_code=status)
            self._rate_limit_until = self._clock() + self.settings.rate_limit_cooldown
            self._update_quota(headers)
            self.quota_sink.handle_exceeded(
                service,
                reset_time=_header_int(headers, "x-ratelimit-reset"),
                retry_after=headers.get("retry-after"),
            )
        elif status == 503:
            error = ServiceUnavailableError(message, status_code=status)
            self.error_sink.report(error, "Gemini API Service")
        else:
            error = NetworkError(message, status_code=status)
            self.error_sink.report(error, "Gemini API Network")

        logger.error("Gemini API returned HTTP %d: %s", status, message)
        return error

    @staticmethod
    def _error_message(response: TransportResponse) -> str:
        data = response["data"]
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if data.get("message"):
                return str(data["message"])
        return f"HTTP {response['status_code']}"

    def _update_quota(self, headers: dict[str, str]) -> None:
        remaining = _header_int(headers, "x-ratelimit-remaining")
        limit = _header_int(headers, "x-ratelimit-limit")
        if remaining is None or limit is None:
            return
        self.quota_sink.update(
            self.settings.service_name,
            remaining=remaining,
            limit=limit,
            reset_time=_header_int(headers, "x-ratelimit-reset"),
        )

    def extract_text(self, response: Any) -> str:
        return extract_text(response)

    def queue_status(self) -> QueueStatus:
        return QueueStatus(
            queue_length=len(self._queue),
            is_processing=self._processing,
            rate_limit_until=self._rate_limit_until,
            is_rate_limited=self._clock() < self._rate_limit_until,
        )

    def clear_queue(self) -> None:
        """Fail every waiting request. The in-flight request is not cancelled."""
        for item in self._queue:
            self._settle(item, error=QueueClearedError("Queue cleared"))
        self._queue.clear()

    def reset_rate_limit(self) -> None:
        self._rate_limit_until = 0.0
        for event in self._reset_waiters:
            event.set()

    async def test_connection(self) -> bool:
        if not self._api_key:
            raise InvalidKeyError("No API key configured")

        try:
            await self._send(CONNECTION_TEST_BODY, self._api_key)
        except GeminiAPIError as error:
            if error.kind is ErrorKind.INVALID_KEY:
                raise InvalidKeyError("Invalid API key. Please check your Gemini API key.") from error
            if error.kind is ErrorKind.QUOTA_EXCEEDED:
                raise QuotaExceededError("API quota exceeded. Please check your usage limits.") from error
            if error.kind is ErrorKind.RATE_LIMITED:
                raise RateLimitedError("Rate limit exceeded. Please try again later.") from error
            raise GeminiAPIError(
                f"Connection test failed: {error.message}", kind=error.kind
            ) from error
        return True

    async def aclose(self) -> None:
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()
