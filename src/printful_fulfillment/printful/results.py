"""Tagged results for Printful-facing operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# HTTP codes worth retrying even though the API answered
RETRYABLE_API_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ErrorKind(str, Enum):
    """Failure taxonomy for provider-facing calls."""

    CONFIGURATION = "configuration"  # Missing credentials
    TRANSPORT = "transport"  # Network/connection failure
    TIMEOUT = "timeout"  # Call exceeded its time budget
    API = "api"  # Printful answered with an error code
    VALIDATION = "validation"  # Local precondition or payload shape violated
    SIGNATURE = "signature"  # Webhook authentication failure


@dataclass(frozen=True)
class PrintfulError:
    """Typed error carried by a failed ServiceResult."""

    message: str
    reason: str
    code: int
    kind: ErrorKind = ErrorKind.API

    @property
    def retryable(self) -> bool:
        """Whether repeating the same call may succeed."""
        if self.kind in (ErrorKind.TRANSPORT, ErrorKind.TIMEOUT):
            return True
        if self.kind == ErrorKind.API:
            return self.code in RETRYABLE_API_CODES
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "reason": self.reason,
            "code": self.code,
            "kind": self.kind.value,
        }

    def __str__(self) -> str:
        return f"{self.message} ({self.reason}, code {self.code})"


class ServiceResultError(Exception):
    """Raised by ServiceResult.unwrap() on a failed result."""

    def __init__(self, error: PrintfulError) -> None:
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """
    Discriminated result: success with data, or failure with a PrintfulError.

    Used in place of exceptions for every provider-facing operation so
    callers can branch on partial failure without losing the error type.
    """

    success: bool
    data: T | None = None
    error: PrintfulError | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: PrintfulError) -> "ServiceResult[T]":
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Return data, or raise ServiceResultError for a failure."""
        if not self.success:
            raise ServiceResultError(self.error)
        return self.data
