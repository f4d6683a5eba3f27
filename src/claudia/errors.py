"""Error handling for claudia.

Provides the failure taxonomy raised by the client: upstream API errors
classified by status code, user cancellation, timeouts, and stream decode
failures.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from .cancellation import AbortSignal
    from .models import MessageRequest

# ─────────────────────────────────────────────────────────────────────────────
# Error Codes
# ─────────────────────────────────────────────────────────────────────────────


class ErrorCode(str, Enum):
    """Upstream error classification.

    Values are the error-type strings the API puts in error bodies, so a
    code can be recovered either from an HTTP status or from a body.

    Usage:
        from claudia import APIError, ErrorCode

        try:
            response = await client.messages.create(request)
        except APIError as e:
            if e.code == ErrorCode.RATE_LIMIT_ERROR:
                # Back off at the application level
                pass
    """

    INVALID_REQUEST_ERROR = "invalid_request_error"
    AUTHENTICATION_ERROR = "authentication_error"
    PERMISSION_ERROR = "permission_error"
    NOT_FOUND_ERROR = "not_found_error"
    REQUEST_TOO_LARGE = "request_too_large"
    RATE_LIMIT_ERROR = "rate_limit_error"
    API_ERROR = "api_error"
    OVERLOADED_ERROR = "overloaded_error"

    # Client-side codes
    STREAM_ABORTED = "stream_aborted"
    TIMEOUT = "timeout"
    DECODE_ERROR = "decode_error"
    INCOMPLETE_STREAM = "incomplete_stream"

    @classmethod
    def from_status(cls, status_code: int) -> ErrorCode:
        """Map an HTTP status to a code; unknown statuses are API errors."""
        return _STATUS_CODES.get(status_code, cls.API_ERROR)

    @classmethod
    def from_type(cls, error_type: str | None) -> ErrorCode:
        """Map an error-body type string to a code."""
        try:
            return cls(error_type)
        except ValueError:
            return cls.API_ERROR

    @property
    def status_code(self) -> int | None:
        """HTTP status associated with this code, if any."""
        for status, code in _STATUS_CODES.items():
            if code is self:
                return status
        return None


_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_REQUEST_ERROR,
    401: ErrorCode.AUTHENTICATION_ERROR,
    403: ErrorCode.PERMISSION_ERROR,
    404: ErrorCode.NOT_FOUND_ERROR,
    413: ErrorCode.REQUEST_TOO_LARGE,
    429: ErrorCode.RATE_LIMIT_ERROR,
    500: ErrorCode.API_ERROR,
    529: ErrorCode.OVERLOADED_ERROR,
}


# ─────────────────────────────────────────────────────────────────────────────
# Failure Types (what went wrong)
# ─────────────────────────────────────────────────────────────────────────────


class FailureType(str, Enum):
    """What actually went wrong - the root cause of the failure.

    Used in log lines and observability events to classify the failure.
    """

    ABORT = "abort"  # Caller's signal fired
    TIMEOUT = "timeout"  # Per-attempt deadline elapsed
    NETWORK = "network"  # Transport-level failure
    API = "api"  # Non-200 response from the API
    DECODE = "decode"  # Malformed or truncated event stream
    UNKNOWN = "unknown"  # Unclassified error


# ─────────────────────────────────────────────────────────────────────────────
# Error Classes
# ─────────────────────────────────────────────────────────────────────────────


class Error(Exception):
    """Base class for claudia errors.

    Attributes:
        code: The error code (ErrorCode enum)
        timestamp: Unix timestamp when error occurred
    """

    def __init__(self, message: str, code: ErrorCode) -> None:
        super().__init__(message)
        self.code = code
        self.timestamp = time.time()

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def to_detailed_string(self) -> str:
        """Get detailed string representation for logging."""
        lines = [
            f"Error [{self.code.value}]: {self.message}",
            f"  Timestamp: {self.timestamp}",
        ]
        for key, value in self._details().items():
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)

    def _details(self) -> dict[str, Any]:
        return {}


class APIError(Error):
    """Non-200 response from the API, fully read and classified.

    Usage:
        try:
            await client.messages.create(request)
        except APIError as e:
            print(e.status_code)  # 429
            print(e.code)         # ErrorCode.RATE_LIMIT_ERROR
            print(e.error_type)   # "rate_limit_error"

    For ``invalid_request_error`` the message ends with the serialized
    request and the request itself is kept on ``request``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_type: str | None = None,
        code: ErrorCode | None = None,
        request: MessageRequest | None = None,
    ) -> None:
        code = code or ErrorCode.from_status(status_code)
        if code is ErrorCode.INVALID_REQUEST_ERROR and request is not None:
            message = f"{message}. Input: {request.to_json()}"
        super().__init__(message, code)
        self.status_code = status_code
        self.error_type = error_type or code.value
        self.request = request

    def _details(self) -> dict[str, Any]:
        return {"Status": self.status_code, "Type": self.error_type}


class AbortError(Error):
    """The caller's abort signal fired. Never retried."""

    def __init__(self, signal: AbortSignal, message: str | None = None) -> None:
        reason = signal.reason
        super().__init__(
            message or f"Request aborted{f': {reason}' if reason else ''}",
            ErrorCode.STREAM_ABORTED,
        )
        self.signal = signal

    def _details(self) -> dict[str, Any]:
        return {"Reason": self.signal.reason}


class TimeoutError(Error):
    """Raised when an attempt runs past its configured timeout."""

    def __init__(self, timeout_seconds: float, message: str | None = None) -> None:
        super().__init__(
            message
            or f"The request was canceled due to the configured timeout of "
            f"{timeout_seconds} seconds elapsing.",
            ErrorCode.TIMEOUT,
        )
        self.timeout_seconds = timeout_seconds

    def _details(self) -> dict[str, Any]:
        return {"Timeout (s)": self.timeout_seconds}


class DecodeError(Error):
    """A framed record in the event stream could not be decoded."""

    def __init__(
        self,
        message: str,
        *,
        event: str | None = None,
        data: str | None = None,
        code: ErrorCode = ErrorCode.DECODE_ERROR,
    ) -> None:
        super().__init__(message, code)
        self.event = event
        self.data = data

    def _details(self) -> dict[str, Any]:
        return {"Event": self.event, "Data": self.data}


class IncompleteStreamError(DecodeError):
    """The event stream ended before ``message_stop`` was seen."""

    def __init__(self, message: str = "Stream ended before message_stop") -> None:
        super().__init__(message, code=ErrorCode.INCOMPLETE_STREAM)


# ─────────────────────────────────────────────────────────────────────────────
# Categorization
# ─────────────────────────────────────────────────────────────────────────────


def categorize_error(error: BaseException) -> FailureType:
    """Classify any exception raised out of a request.

    Usage:
        from claudia import categorize_error, FailureType

        try:
            await client.messages.create(request)
        except Exception as e:
            if categorize_error(e) is FailureType.NETWORK:
                ...
    """
    if isinstance(error, AbortError):
        return FailureType.ABORT
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return FailureType.TIMEOUT
    if isinstance(error, APIError):
        return FailureType.API
    if isinstance(error, DecodeError):
        return FailureType.DECODE
    if isinstance(error, (httpx.TransportError, OSError)):
        return FailureType.NETWORK
    return FailureType.UNKNOWN
