"""Error taxonomy for number analysis.

Every failure of NumberAnalysisService.analyze() is one of:
- InvalidInputError: the caller supplied a bad value (negative, non-integer,
  outside the 64-bit range). Raised before any check is dispatched.
- AnalysisCancelledError: execution was stopped from outside while checks
  were outstanding.
- CheckFailedError: a check raised unexpectedly, or the join timed out.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Discriminator for AnalysisError subclasses."""
    INVALID_INPUT = "invalid_input"
    CANCELLED = "cancelled"
    CHECK_FAILED = "check_failed"


class AnalysisError(Exception):
    """Base class for all analysis failures."""

    kind: ErrorKind

    def __init__(self, message: str, number: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.number = number


class InvalidInputError(AnalysisError):
    kind = ErrorKind.INVALID_INPUT


class AnalysisCancelledError(AnalysisError):
    kind = ErrorKind.CANCELLED


class CheckFailedError(AnalysisError):
    """A check failed; the original exception is kept on `cause`."""

    kind = ErrorKind.CHECK_FAILED

    def __init__(
        self,
        message: str,
        number: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, number=number)
        self.cause = cause
