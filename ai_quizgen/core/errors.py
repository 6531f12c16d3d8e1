"""Error kinds raised by the Gemini request orchestrator.

Every failure that leaves the orchestrator is a ``GeminiAPIError`` carrying
one of the ``ErrorKind`` values, so callers can branch on ``error.kind``
instead of parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class ErrorKind(Enum):
    INVALID_KEY = "INVALID_API_KEY"
    RATE_LIMITED = "RATE_LIMIT_EXCEEDED"
    NETWORK = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.NETWORK,
        ErrorKind.TIMEOUT,
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVICE_UNAVAILABLE,
    }
)


class GeminiAPIError(Exception):
    """Base error for all orchestrator failures.

    Attributes:
        kind: The classified error kind
        message: Human-readable message
        status_code: HTTP status that produced the error, if any
        request_id: Queue item id the error belongs to, if any
        retry_count: Retries already spent on the request when it failed
    """

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        *,
        kind: Union[ErrorKind, None] = None,
        status_code: Union[int, None] = None,
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.status_code = status_code
        self.request_id: Union[str, None] = None
        self.retry_count = 0

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "retry_count": self.retry_count,
        }


class InvalidKeyError(GeminiAPIError):
    kind = ErrorKind.INVALID_KEY


class RateLimitedError(GeminiAPIError):
    kind = ErrorKind.RATE_LIMITED


class NetworkError(GeminiAPIError):
    kind = ErrorKind.NETWORK


class RequestTimeoutError(GeminiAPIError):
    kind = ErrorKind.TIMEOUT


class InvalidResponseError(GeminiAPIError):
    kind = ErrorKind.INVALID_RESPONSE


class QuotaExceededError(GeminiAPIError):
    kind = ErrorKind.QUOTA_EXCEEDED


class ServiceUnavailableError(GeminiAPIError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class QueueFullError(RateLimitedError):
    """Raised on admission when the request queue is at capacity."""


class QueueClearedError(ServiceUnavailableError):
    """Set on queued requests withdrawn by ``clear_queue``."""


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, GeminiAPIError) and error.is_retryable
