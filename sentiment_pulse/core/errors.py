"""Error taxonomy for upstream fetches.

Every failure raised by a transport or adapter is a ``FetchError`` carrying an
``ErrorKind``. The retry engine looks at ``retryable`` to decide whether another
attempt makes sense; everything else is terminal for that source.
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    NETWORK_ERROR = "NetworkError"
    RATE_LIMITED = "RateLimited"
    UNAUTHORIZED = "Unauthorized"
    PAYMENT_REQUIRED = "PaymentRequired"
    INVALID_REQUEST = "InvalidRequest"
    INVALID_RESPONSE_FORMAT = "InvalidResponseFormat"
    PARSE_ERROR = "ParseError"
    INSUFFICIENT_DATA = "InsufficientData"
    MISSING_CREDENTIAL = "MissingCredential"
    UNSUPPORTED_COIN = "UnsupportedCoin"
    UPSTREAM_ERROR = "UpstreamError"
    EXHAUSTED = "Exhausted"
    CANCELLED = "Cancelled"
    TIMEOUT = "Timeout"
    UNEXPECTED = "Unexpected"


class FetchError(Exception):
    """Base class for all fetch-layer errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    retryable: bool = False

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} (HTTP {self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class NetworkError(FetchError):
    """No response: connect failure, read timeout, connection reset."""

    kind = ErrorKind.NETWORK_ERROR
    retryable = True


class RateLimitedError(FetchError):
    kind = ErrorKind.RATE_LIMITED
    retryable = True


class UpstreamHTTPError(FetchError):
    """Any HTTP error status without a dedicated class (5xx, 404, ...)."""

    kind = ErrorKind.UPSTREAM_ERROR
    retryable = True


class UnauthorizedError(FetchError):
    """HTTP 401, surfaced to users as a missing or invalid credential."""

    kind = ErrorKind.UNAUTHORIZED


class PaymentRequiredError(FetchError):
    """HTTP 402 or a provider-reported plan restriction."""

    kind = ErrorKind.PAYMENT_REQUIRED


class InvalidRequestError(FetchError):
    kind = ErrorKind.INVALID_REQUEST


class InvalidResponseFormatError(FetchError):
    """Body is not JSON or is an HTML error page."""

    kind = ErrorKind.INVALID_RESPONSE_FORMAT


class ParseError(FetchError):
    """Body is JSON but does not have the expected shape."""

    kind = ErrorKind.PARSE_ERROR


class InsufficientDataError(ParseError):
    kind = ErrorKind.INSUFFICIENT_DATA


class MissingCredentialError(FetchError):
    kind = ErrorKind.MISSING_CREDENTIAL


def error_for_status(status: int, message: str) -> FetchError:
    """Map an HTTP error status to its ``FetchError`` class."""
    if status == 400:
        return InvalidRequestError(message, status=status)
    if status == 401:
        return UnauthorizedError(message, status=status)
    if status == 402:
        return PaymentRequiredError(message, status=status)
    if status == 429:
        return RateLimitedError(message, status=status)
    return UpstreamHTTPError(message, status=status)
