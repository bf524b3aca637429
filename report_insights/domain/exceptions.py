"""Domain-specific exceptions — framework-independent.

Every failure of an analysis request is an ``AnalysisError`` carrying an
``ErrorKind``. The kind decides whether the retry handler may try again
(or fall back to another model) and which message the host shows.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of analysis request failures."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    PARSE_ERROR = "parse_error"
    ALL_MODELS_EXHAUSTED = "all_models_exhausted"


_RETRIABLE_KINDS = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
    ErrorKind.RATE_LIMIT,
    ErrorKind.SERVER_ERROR,
    ErrorKind.PARSE_ERROR,
})

_USER_MESSAGES = {
    ErrorKind.TIMEOUT: "The analysis service did not answer in time. Please try again.",
    ErrorKind.NETWORK: "Could not reach the analysis service. Check the network connection.",
    ErrorKind.AUTH: "The analysis service rejected the API key. Check the configuration.",
    ErrorKind.RATE_LIMIT: "The analysis service is busy. Please wait a moment and retry.",
    ErrorKind.SERVER_ERROR: "The analysis service is currently unavailable.",
    ErrorKind.CLIENT_ERROR: "The analysis request was rejected. Check the request settings.",
    ErrorKind.PARSE_ERROR: "The analysis service returned a response that could not be read.",
    ErrorKind.ALL_MODELS_EXHAUSTED: "All configured models failed to answer.",
}


class AnalysisError(Exception):
    """Base class for every classified analysis failure."""

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str, *, kind: ErrorKind | None = None):
        if kind is not None:
            self.kind = kind
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")

    @property
    def retriable(self) -> bool:
        return self.kind in _RETRIABLE_KINDS

    @property
    def user_message(self) -> str:
        """Human-readable copy for the host's message display."""
        return _USER_MESSAGES[self.kind]


class RequestTimeoutError(AnalysisError):
    """Raised when a single attempt exceeds its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int, message: str | None = None):
        self.timeout_ms = timeout_ms
        super().__init__(message or f"Request timed out after {timeout_ms} ms")


class NetworkError(AnalysisError):
    """Raised on connection-level failures (DNS, refused, reset)."""

    kind = ErrorKind.NETWORK


class HTTPStatusError(AnalysisError):
    """Raised when the remote service answers with a non-2xx status.

    The kind is derived from the status code: 401 is an auth failure,
    429 a rate limit, other 4xx client errors. Anything else counts as a
    server-side problem.
    """

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"HTTP {status_code}: {body}", kind=self.kind_for_status(status_code)
        )

    @staticmethod
    def kind_for_status(status_code: int) -> ErrorKind:
        if status_code == 401:
            return ErrorKind.AUTH
        if status_code == 429:
            return ErrorKind.RATE_LIMIT
        if 400 <= status_code < 500:
            return ErrorKind.CLIENT_ERROR
        return ErrorKind.SERVER_ERROR


class ResponseParseError(AnalysisError):
    """Raised when a response body is not valid or not the expected JSON."""

    kind = ErrorKind.PARSE_ERROR


class AllModelsExhaustedError(AnalysisError):
    """Raised when no candidate model produced a result."""

    kind = ErrorKind.ALL_MODELS_EXHAUSTED

    def __init__(self, message: str = "All available models failed"):
        super().__init__(message)


def is_retriable(error: BaseException) -> bool:
    """Return True when *error* may be retried or trigger a model fallback.

    Only classified ``AnalysisError`` instances can be retriable; anything
    else is a programming error and aborts the orchestration.
    """
    return isinstance(error, AnalysisError) and error.retriable
