"""Error taxonomy for vision analysis calls.

Every failure a single image can produce maps onto one of these classes.
``fatal`` errors stop the rest of the batch; ``retryable`` errors are retried
by the caller until its attempt budget runs out; everything else skips the
image straight away.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    VALIDATION = "validation"
    NOT_ANALYZABLE = "not_analyzable"


class FallbackReason(StrEnum):
    NO_CREDENTIAL = "no_credential"
    UNREACHABLE = "unreachable"
    ALL_CALLS_FAILED = "all_calls_failed"
    SKIPPED_BY_REQUEST = "skipped_by_request"
    EMPTY_BATCH = "empty_batch"


class AnalysisError(Exception):
    """Base class for classified per-image failures."""

    kind: ErrorKind = ErrorKind.NETWORK
    fatal: bool = False
    retryable: bool = False

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value
        self.status_code = status_code


class AuthError(AnalysisError):
    kind = ErrorKind.AUTH
    fatal = True


class RateLimitError(AnalysisError):
    kind = ErrorKind.RATE_LIMIT
    fatal = True


class NetworkError(AnalysisError):
    kind = ErrorKind.NETWORK
    retryable = True


class MalformedResponseError(AnalysisError):
    kind = ErrorKind.MALFORMED_RESPONSE
    retryable = True


class ValidationError(AnalysisError):
    """JSON was found but does not satisfy the field contract."""

    kind = ErrorKind.VALIDATION


class NotAnalyzableError(AnalysisError):
    """The service explicitly declined to analyse the image."""

    kind = ErrorKind.NOT_ANALYZABLE

    def __init__(self, explanation: str = "") -> None:
        super().__init__(explanation or "Image could not be analysed")
        self.explanation = explanation
