"""Tests for error classification and sanitization."""

import asyncio

from pydantic import ValidationError

from transform_engine.core.errors import (
    REASON_MESSAGES,
    SANITIZED_MESSAGES,
    AIModelError,
    ErrorCode,
    FFmpegError,
    GenerationTimeoutError,
    InvalidInputError,
    SafetyFilteredError,
    classify_error,
)
from transform_engine.schemas.job import JobProgress


class TestClassifyError:
    """Tests for classify_error."""

    def test_invalid_input(self):
        error = classify_error(InvalidInputError("capture step abc missing", step="validation"))

        assert error.code == "INVALID_INPUT"
        assert error.message == SANITIZED_MESSAGES["INVALID_INPUT"]
        assert error.step == "validation"
        assert error.is_retryable is False

    def test_ai_model_error(self):
        error = classify_error(AIModelError("500 from https://internal/endpoint"))

        assert error.code == "AI_MODEL_ERROR"
        assert "internal" not in error.message

    def test_safety_filtered_has_distinct_message(self):
        filtered = classify_error(SafetyFilteredError("rai filtered", step="generate-video"))
        generic = classify_error(AIModelError("boom"))

        assert filtered.code == "AI_MODEL_ERROR"
        assert filtered.message == REASON_MESSAGES["safety_filtered"]
        assert filtered.message != generic.message

    def test_poll_timeout(self):
        error = classify_error(GenerationTimeoutError("not done after 300s"))

        assert error.code == "PROCESSING_FAILED"
        assert error.message == REASON_MESSAGES["timeout"]

    def test_wall_clock_timeout(self):
        error = classify_error(asyncio.TimeoutError())

        assert error.code == "PROCESSING_FAILED"
        assert error.message == REASON_MESSAGES["timeout"]

    def test_ffmpeg_stderr_not_leaked(self):
        exc = FFmpegError("Image scaling failed", "codec", {"stderr": "/tmp/transform-job-1/source.jpg: Invalid data"})
        error = classify_error(exc, step="processing")

        assert error.code == "PROCESSING_FAILED"
        assert "/tmp" not in error.message
        assert error.step == "processing"
        assert exc.stderr.startswith("/tmp")

    def test_validation_error_is_invalid_input(self):
        try:
            JobProgress(current_step="x", percentage=-5)
        except ValidationError as e:
            error = classify_error(e, step="load")

        assert error.code == ErrorCode.INVALID_INPUT.value
        assert error.step == "load"

    def test_unexpected_error_is_generic(self):
        error = classify_error(KeyError("snapshot"))

        assert error.code == "PROCESSING_FAILED"
        assert error.message == SANITIZED_MESSAGES["PROCESSING_FAILED"]
