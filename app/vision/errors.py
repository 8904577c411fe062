import asyncio
import json
import logging
from enum import Enum

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger("vision")


class ErrorCode(str, Enum):
    NO_FILE = "NO_FILE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MODE_UNSUPPORTED = "MODE_UNSUPPORTED"
    PARSE_FAILED = "PARSE_FAILED"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class ErrorRecord(BaseModel):
    code: ErrorCode
    http_status: int
    retryable: bool
    user_message: str
    suggestions: list[str]

    def to_response(self) -> dict:
        return {
            "success": False,
            "error": self.user_message,
            "code": self.code.value,
            "retryable": self.retryable,
            "suggestions": self.suggestions,
        }


# code -> (http status, retryable, user message, suggestions)
ERROR_CATALOG: dict[ErrorCode, tuple[int, bool, str, list[str]]] = {
    ErrorCode.NO_FILE: (
        400, False, "No photo was provided.",
        ["Take or upload a photo and try again."],
    ),
    ErrorCode.PAYLOAD_TOO_LARGE: (
        413, False, "The photo is too large to process.",
        ["Compress the image or lower the camera resolution before uploading."],
    ),
    ErrorCode.VALIDATION_FAILED: (
        400, False, "The request was not in the expected format.",
        ["Check that every photo has a step and a location."],
    ),
    ErrorCode.MODE_UNSUPPORTED: (
        400, False, "This document type is not supported.",
        ["Choose one of the supported document types."],
    ),
    ErrorCode.PARSE_FAILED: (
        422, True, "We couldn't read the information in this photo.",
        ["Retake the photo with the text in focus and well lit.", "Or enter the details manually."],
    ),
    ErrorCode.UPSTREAM_TIMEOUT: (
        504, True, "Reading the photo took too long.",
        ["Try again in a moment."],
    ),
    ErrorCode.RATE_LIMIT: (
        429, True, "Too many photos are being processed right now.",
        ["Wait a few seconds and try again."],
    ),
    ErrorCode.PROCESSING_ERROR: (
        500, True, "Something went wrong while processing the photo.",
        ["Try again.", "If it keeps failing, enter the details manually."],
    ),
}


class PipelineError(Exception):
    """A failure that already knows its place in the taxonomy."""

    def __init__(self, code: ErrorCode, detail: str = ""):
        super().__init__(detail or code.value)
        self.code = code
        self.detail = detail


def error_record(code: ErrorCode) -> ErrorRecord:
    http_status, retryable, message, suggestions = ERROR_CATALOG[code]
    return ErrorRecord(
        code=code,
        http_status=http_status,
        retryable=retryable,
        user_message=message,
        suggestions=list(suggestions),
    )


_STATUS_CODES = {
    429: ErrorCode.RATE_LIMIT,
    413: ErrorCode.PAYLOAD_TOO_LARGE,
    408: ErrorCode.UPSTREAM_TIMEOUT,
    504: ErrorCode.UPSTREAM_TIMEOUT,
}


def code_for_status(status: int) -> ErrorCode:
    """Closest taxonomy code for a bare HTTP status."""
    if status in _STATUS_CODES:
        return _STATUS_CODES[status]
    return ErrorCode.VALIDATION_FAILED if status < 500 else ErrorCode.PROCESSING_ERROR


def classify_code(exc: BaseException) -> ErrorCode:
    if isinstance(exc, PipelineError):
        return exc.code
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ErrorCode.UPSTREAM_TIMEOUT
    if isinstance(exc, json.JSONDecodeError):
        return ErrorCode.PARSE_FAILED
    if isinstance(exc, ValidationError):
        return ErrorCode.VALIDATION_FAILED

    # SDK errors (openai, httpx) expose the upstream status in different places
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    if isinstance(status, int) and status in _STATUS_CODES:
        return _STATUS_CODES[status]

    name = type(exc).__name__.lower()
    if "ratelimit" in name:
        return ErrorCode.RATE_LIMIT
    if "timeout" in name:
        return ErrorCode.UPSTREAM_TIMEOUT
    return ErrorCode.PROCESSING_ERROR


def classify(exc: BaseException) -> ErrorRecord:
    """Map any exception into the closed error taxonomy.

    Internal exception text never reaches the record; it is only logged.
    """
    code = classify_code(exc)
    if code == ErrorCode.PROCESSING_ERROR:
        logger.error(f"Unclassified failure: {type(exc).__name__}: {exc}")
    return error_record(code)
