"""Error taxonomy shared by the service clients, RetryPolicy and the engine.

Every failure that crosses a service boundary is sorted into one of five
kinds.  Only TRANSIENT and RATE_LIMIT are retried; CANCELLED is not an error
at all from the user's point of view.
"""

from __future__ import annotations

import enum

import httpx
import openai
import pydantic

from sitegen.shared.cancellation import Cancelled


class ErrorKind(str, enum.Enum):
    TRANSIENT = "transient"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    CANCELLED = "cancelled"
    SERVICE = "service"


class SiteGenError(Exception):
    """Base class for errors raised by sitegen itself."""

    kind: ErrorKind = ErrorKind.SERVICE


class TransientNetworkError(SiteGenError):
    """Connectivity-shaped failure; safe to retry."""

    kind = ErrorKind.TRANSIENT


class RateLimitedError(SiteGenError):
    """The remote service asked us to slow down."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SiteValidationError(SiteGenError):
    """Structurally required data is absent or inconsistent. Never retried."""

    kind = ErrorKind.VALIDATION


class ServiceError(SiteGenError):
    """The remote service answered with something we cannot use."""

    kind = ErrorKind.SERVICE


class WorkflowBusyError(SiteGenError):
    """A workflow start was requested while another one is in flight."""

    kind = ErrorKind.VALIDATION


_TRANSIENT_STATUS = {502, 503, 504}

# Payload-too-big 429s: retrying won't help, the request itself must shrink.
_NOT_RETRYABLE_MARKERS = ("request too large", "context_length_exceeded")


def _status_kind(status: int, headers: httpx.Headers | None, message: str) -> ErrorKind:
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status == 403 and headers is not None and headers.get("x-ratelimit-remaining") == "0":
        return ErrorKind.RATE_LIMIT
    if status in _TRANSIENT_STATUS or "overloaded" in message.lower():
        return ErrorKind.TRANSIENT
    return ErrorKind.SERVICE


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception onto the retry taxonomy."""
    if isinstance(exc, Cancelled):
        return ErrorKind.CANCELLED
    if isinstance(exc, SiteGenError):
        return exc.kind
    if isinstance(exc, pydantic.ValidationError):
        return ErrorKind.VALIDATION

    if isinstance(exc, openai.RateLimitError):
        msg = str(exc).lower()
        if any(marker in msg for marker in _NOT_RETRYABLE_MARKERS):
            return ErrorKind.SERVICE
        return ErrorKind.RATE_LIMIT
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(exc, openai.APIConnectionError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, openai.APIStatusError):
        return _status_kind(exc.status_code, exc.response.headers, str(exc))

    if isinstance(exc, httpx.TransportError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, httpx.HTTPStatusError):
        return _status_kind(exc.response.status_code, exc.response.headers, exc.response.text)

    return ErrorKind.SERVICE


def retry_after_hint(exc: BaseException) -> float | None:
    """Server-suggested wait in seconds, if the error carries one."""
    if isinstance(exc, RateLimitedError):
        return exc.retry_after

    response: httpx.Response | None = None
    if isinstance(exc, openai.APIStatusError):
        response = exc.response
    elif isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
    if response is None:
        return None

    try:
        if retry_after := response.headers.get("retry-after"):
            return float(retry_after)
    except (TypeError, ValueError):
        pass
    return None
