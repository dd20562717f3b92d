"""Error taxonomy and sanitization for transform jobs.

Executors raise the typed errors below; the task handler converts whatever
escapes into a ``JobError`` through ``classify_error``. Only the fixed messages
in ``SANITIZED_MESSAGES`` ever reach the stored job document. Raw provider or
subprocess text stays in the logs.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError

from transform_engine.schemas.job import JobError


class ErrorCode(str, Enum):
    """Job-terminal error codes."""
    INVALID_INPUT = "INVALID_INPUT"
    AI_MODEL_ERROR = "AI_MODEL_ERROR"
    PROCESSING_FAILED = "PROCESSING_FAILED"


class ErrorReason(str, Enum):
    """Distinguishable failure variants inside a code."""
    SAFETY_FILTERED = "safety_filtered"
    TIMEOUT = "timeout"


SANITIZED_MESSAGES: Dict[str, str] = {
    ErrorCode.INVALID_INPUT.value: "The request could not be processed due to invalid input.",
    ErrorCode.AI_MODEL_ERROR.value: "The AI service could not generate a result.",
    ErrorCode.PROCESSING_FAILED.value: "An error occurred while processing your request.",
}

REASON_MESSAGES: Dict[str, str] = {
    ErrorReason.SAFETY_FILTERED.value: "The generated output was filtered by the safety policy.",
    ErrorReason.TIMEOUT.value: "Processing timed out before a result was produced.",
}


class TransformError(Exception):
    """Base class for typed executor failures."""

    code: ErrorCode = ErrorCode.PROCESSING_FAILED
    reason: Optional[ErrorReason] = None

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class InvalidInputError(TransformError):
    """Missing or empty required config, missing source media, bad step reference."""
    code = ErrorCode.INVALID_INPUT


class AIModelError(TransformError):
    """The generative provider returned an error."""
    code = ErrorCode.AI_MODEL_ERROR


class SafetyFilteredError(AIModelError):
    """The provider suppressed all results under its content-safety policy."""
    reason = ErrorReason.SAFETY_FILTERED


class ProcessingError(TransformError):
    code = ErrorCode.PROCESSING_FAILED


class GenerationTimeoutError(ProcessingError):
    """A provider operation did not finish within its poll ceiling."""
    reason = ErrorReason.TIMEOUT


class StorageError(ProcessingError):
    """Object store transfer failed."""


class FFmpegError(ProcessingError):
    """An ffmpeg/ffprobe subprocess failed."""

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        details: Optional[Dict[str, Any]] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message, step=step)
        self.error_type = error_type
        self.details = details or {}

    @property
    def stderr(self) -> str:
        return self.details.get("stderr", "")


class UnknownOutcomeTypeError(RuntimeError):
    """No executor is registered for an outcome type.

    The submission path only creates jobs for implemented outcome types, so
    reaching this is a deployment or programming error.
    """


def classify_error(exc: BaseException, step: Optional[str] = None) -> JobError:
    """Map any exception to a sanitized job error."""
    code = ErrorCode.PROCESSING_FAILED
    reason: Optional[ErrorReason] = None

    if isinstance(exc, TransformError):
        code = exc.code
        reason = exc.reason
        step = exc.step or step
    elif isinstance(exc, ValidationError):
        code = ErrorCode.INVALID_INPUT
    elif isinstance(exc, asyncio.TimeoutError):
        reason = ErrorReason.TIMEOUT

    message = SANITIZED_MESSAGES[code.value]
    if reason is not None:
        message = REASON_MESSAGES[reason.value]

    return JobError(code=code.value, message=message, step=step, is_retryable=False)
