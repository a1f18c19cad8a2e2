"""Structured error taxonomy for provider and store failures.

Each failure is tagged with an ErrorKind at the point it is raised. Retry
and transient/permanent decisions compare kinds by equality; nothing
inspects error message text.
"""

import asyncio
from enum import Enum
from typing import FrozenSet, Optional


class ErrorKind(str, Enum):
    """Classification attached to every provider failure."""

    TIMEOUT = "timeout"
    GATEWAY_TIMEOUT = "gateway_timeout"   # 504, and the intermediary's 524
    SERVER_ERROR = "server_error"         # any other 5xx
    THROTTLED = "throttled"               # 429 / intermediary subrequest limit
    VALIDATION = "validation"             # bad input or unusable provider result
    UPSTREAM_4XX = "upstream_4xx"         # any other 4xx
    NETWORK = "network"                   # connection refused or dropped


# Failures left for the next run instead of being persisted on the job.
TRANSIENT_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.GATEWAY_TIMEOUT,
    ErrorKind.SERVER_ERROR,
    ErrorKind.THROTTLED,
})

GATEWAY_TIMEOUT_STATUSES = (504, 524)


class ProviderError(Exception):
    """Raised when an external provider or the job store rejects a call."""

    def __init__(self, message: str, kind: ErrorKind, status_code: Optional[int] = None):
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def from_status(cls, status_code: int, message: str) -> "ProviderError":
        """Builds an error whose kind is derived from an HTTP status code."""
        if status_code in GATEWAY_TIMEOUT_STATUSES:
            kind = ErrorKind.GATEWAY_TIMEOUT
        elif 500 <= status_code < 600:
            kind = ErrorKind.SERVER_ERROR
        elif status_code == 429:
            kind = ErrorKind.THROTTLED
        elif status_code in (400, 422):
            kind = ErrorKind.VALIDATION
        else:
            kind = ErrorKind.UPSTREAM_4XX
        return cls(message, kind, status_code)

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value}, status={self.status_code}, message={str(self)!r})"


class ConfigurationError(Exception):
    """Raised when the run configuration is missing or unusable. Fatal to a run."""


def classify_error(exc: BaseException) -> Optional[ErrorKind]:
    """Returns the ErrorKind of an exception, or None when it carries none."""
    if isinstance(exc, ProviderError):
        return exc.kind
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    return None


def is_transient(exc: BaseException) -> bool:
    return classify_error(exc) in TRANSIENT_KINDS
