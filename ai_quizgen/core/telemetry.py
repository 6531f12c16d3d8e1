"""Error reporting and quota monitoring sinks used by the orchestrator."""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .errors import ErrorKind, GeminiAPIError

logger = logging.getLogger(__name__)

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_KEY: "Your Gemini API key is missing or invalid. Update it in the settings.",
    ErrorKind.RATE_LIMITED: "Too many requests were sent. Please wait a minute and try again.",
    ErrorKind.NETWORK: "Could not reach the AI service. Check your connection and try again.",
    ErrorKind.TIMEOUT: "The AI service took too long to respond. Please try again.",
    ErrorKind.INVALID_RESPONSE: "The AI service returned an unexpected response. Please try again.",
    ErrorKind.QUOTA_EXCEEDED: "Your API quota is used up or access was denied. Check your usage limits.",
    ErrorKind.SERVICE_UNAVAILABLE: "The AI service is temporarily unavailable. Please try again later.",
}


@dataclass
class ErrorRecord:
    id: str
    kind: Union[str, None]
    message: str
    context: str
    timestamp: float


class ErrorReporter:
    """Logs reported errors and keeps a bounded history for display."""

    def __init__(self, max_records: int = 100, clock: Callable[[], float] = time.time) -> None:
        self._records: deque[ErrorRecord] = deque(maxlen=max_records)
        self._listeners: list[Callable[[ErrorRecord], None]] = []
        self._clock = clock

    def report(self, error: BaseException, context: str = "") -> ErrorRecord:
        kind = error.kind.value if isinstance(error, GeminiAPIError) else None
        record = ErrorRecord(
            id=f"err_{uuid.uuid4().hex[:12]}",
            kind=kind,
            message=str(error),
            context=context,
            timestamp=self._clock(),
        )
        self._records.append(record)
        logger.error("%s: %s (%s)", context or "Error", record.message, kind or "unclassified")
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.exception("Error listener failed for %s", record.id)
        return record

    def add_listener(self, listener: Callable[[ErrorRecord], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[ErrorRecord], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def recent(self) -> list[ErrorRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()

    @staticmethod
    def user_message(kind: ErrorKind) -> str:
        return USER_MESSAGES[kind]


@dataclass
class QuotaStatus:
    remaining: Union[int, None]
    limit: Union[int, None]
    reset_time: Union[int, None]
    usage: float
    last_updated: float


class QuotaMonitor:
    """Tracks remaining quota per service and warns when usage runs high.

    Warnings are logged once per service per threshold until
    ``reset_warnings`` is called or the data is cleaned up.
    """

    def __init__(
        self,
        warning_threshold: float = 0.8,
        critical_threshold: float = 0.95,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self._clock = clock
        self._statuses: dict[str, QuotaStatus] = {}
        self._warned: set[str] = set()
        self._critical_warned: set[str] = set()

    def update(
        self,
        service: str,
        remaining: Optional[int] = None,
        limit: Optional[int] = None,
        reset_time: Optional[int] = None,
        usage: Optional[float] = None,
    ) -> Union[QuotaStatus, None]:
        if usage is None and remaining is not None and limit:
            usage = (limit - remaining) / limit
        if usage is None:
            logger.warning("Unable to calculate quota usage for %s", service)
            return None

        status = QuotaStatus(
            remaining=remaining,
            limit=limit,
            reset_time=reset_time,
            usage=usage,
            last_updated=self._clock(),
        )
        self._statuses[service] = status
        self._check_thresholds(service, usage)
        return status

    def handle_exceeded(
        self,
        service: str,
        reset_time: Optional[int] = None,
        retry_after: Optional[str] = None,
    ) -> None:
        self.update(service, remaining=0, reset_time=reset_time, usage=1.0)
        if reset_time:
            wait_hint = f" Quota resets at epoch {reset_time}."
        elif retry_after:
            wait_hint = f" Wait {retry_after} seconds before trying again."
        else:
            wait_hint = ""
        logger.error("%s quota exceeded.%s", service, wait_hint)

    def _check_thresholds(self, service: str, usage: float) -> None:
        key = service.lower()
        if usage >= self.critical_threshold:
            if key not in self._critical_warned:
                self._critical_warned.add(key)
                logger.error("%s usage is critical: %.0f%% of quota used", service, usage * 100)
        elif usage >= self.warning_threshold:
            if key not in self._warned:
                self._warned.add(key)
                logger.warning("%s usage is high: %.0f%% of quota used", service, usage * 100)

    def get_status(self, service: str) -> Union[QuotaStatus, None]:
        return self._statuses.get(service)

    def all_statuses(self) -> dict[str, QuotaStatus]:
        return dict(self._statuses)

    def reset_warnings(self, service: str) -> None:
        key = service.lower()
        self._warned.discard(key)
        self._critical_warned.discard(key)

    def clear(self) -> None:
        self._statuses.clear()
        self._warned.clear()
        self._critical_warned.clear()

    def set_thresholds(self, warning: float, critical: float) -> None:
        self.warning_threshold = max(0.0, min(1.0, warning))
        self.critical_threshold = max(0.0, min(1.0, critical))

    def cleanup(self, max_age: float = 24 * 60 * 60) -> None:
        """Drop entries whose reset time has passed or that were not updated recently."""
        now = self._clock()
        for service, status in list(self._statuses.items()):
            reset_elapsed = status.reset_time is not None and status.reset_time < now
            if reset_elapsed or now - status.last_updated > max_age:
                del self._statuses[service]
                self.reset_warnings(service)
