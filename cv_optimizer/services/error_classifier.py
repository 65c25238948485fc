"""Retryability checks and user-facing messages for any failure.

Both functions are pure and total: they only inspect the error's type,
status code and message, and never raise.
"""

from enum import Enum

import httpx

from cv_optimizer.services.errors import (
    ContentBlockedError,
    ExportError,
    InputError,
    NetworkError,
    ParseError,
    PERMANENT_ERRORS,
    ProviderNotConfiguredError,
    QuotaExceededError,
    SchemaValidationError,
)

RETRYABLE_MESSAGES = (
    "timeout",
    "network",
    "connection",
    "rate limit",
    "server error",
    "service unavailable",
    "temporarily unavailable",
)

RETRYABLE_STATUS_CODES = frozenset({408, 429})

_NETWORK_ERROR_TYPES = (NetworkError, httpx.TransportError, ConnectionError, TimeoutError)


class ErrorCategory(str, Enum):
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    PAYMENT_REQUIRED = "payment_required"
    SERVER = "server"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    CONTENT_BLOCKED = "content_blocked"
    NOT_CONFIGURED = "not_configured"
    INVALID_RESPONSE = "invalid_response"
    INPUT = "input"
    EXPORT = "export"
    UNKNOWN = "unknown"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: "Network error. Please check your connection and try again.",
    ErrorCategory.RATE_LIMITED: "Rate limit exceeded. Please wait a moment and try again.",
    ErrorCategory.TIMEOUT: "Request timed out. Please try again.",
    ErrorCategory.UNAUTHORIZED: "Authentication failed. Please sign in again.",
    ErrorCategory.FORBIDDEN: "Access denied. You don't have permission for this action.",
    ErrorCategory.PAYMENT_REQUIRED: (
        "AI provider quota exceeded. Please check your Google Cloud billing and quota limits."
    ),
    ErrorCategory.SERVER: "Server error. Please try again later.",
    ErrorCategory.NOT_FOUND: "Resource not found.",
    ErrorCategory.BAD_REQUEST: "Invalid request. Please check your inputs.",
    ErrorCategory.CONTENT_BLOCKED: (
        "Content was blocked by the AI safety filters. Try with different input."
    ),
    ErrorCategory.NOT_CONFIGURED: "The AI service is not configured. Please contact the administrator.",
    ErrorCategory.INVALID_RESPONSE: "Failed to optimize CV. Please try again.",
    ErrorCategory.INPUT: "Invalid input. Please check your file and fields.",
    ErrorCategory.EXPORT: "Failed to generate the document. Please try again.",
    ErrorCategory.UNKNOWN: "An unexpected error occurred. Please try again.",
}

# Checked in order against the lowercased message, before any status mapping
_MESSAGE_RULES: list[tuple[tuple[str, ...], ErrorCategory]] = [
    (("quota", "billing", "resource_exhausted", "payment", "credit", "402"), ErrorCategory.PAYMENT_REQUIRED),
    (("safety", "blocked"), ErrorCategory.CONTENT_BLOCKED),
    (("api key not configured", "not configured"), ErrorCategory.NOT_CONFIGURED),
    (("failed to optimize cv", "failed to parse ai response"), ErrorCategory.INVALID_RESPONSE),
    (("unauthorized", "401", "api key not valid", "permission denied"), ErrorCategory.UNAUTHORIZED),
    (("rate limit", "too many requests", "429"), ErrorCategory.RATE_LIMITED),
    (("timeout", "timed out"), ErrorCategory.TIMEOUT),
    (("network", "failed to fetch", "connection"), ErrorCategory.NETWORK),
    (("not found", "404"), ErrorCategory.NOT_FOUND),
]

# Failures that repeat identically when the same request is sent again
PERMANENT_CATEGORIES = frozenset({
    ErrorCategory.PAYMENT_REQUIRED,
    ErrorCategory.CONTENT_BLOCKED,
    ErrorCategory.NOT_CONFIGURED,
    ErrorCategory.INVALID_RESPONSE,
})


def _status_of(error: object) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def _message_of(error: object) -> str:
    try:
        message = getattr(error, "message", None)
        if not isinstance(message, str):
            message = str(error)
        return message.lower()
    except Exception:
        # A broken __str__ must not make classification fail
        return ""


def is_retryable(error: object) -> bool:
    """Return True if ``error`` looks transient and may be re-attempted."""
    if error is None:
        return False
    if isinstance(error, PERMANENT_ERRORS):
        return False
    if isinstance(error, _NETWORK_ERROR_TYPES):
        return True

    status = _status_of(error)
    if status is not None and (status in RETRYABLE_STATUS_CODES or 500 <= status < 600):
        return True

    message = _message_of(error)
    return any(phrase in message for phrase in RETRYABLE_MESSAGES)


def classify(error: object) -> ErrorCategory:
    """Map any failure to a stable category."""
    if error is None:
        return ErrorCategory.UNKNOWN
    if isinstance(error, QuotaExceededError):
        return ErrorCategory.PAYMENT_REQUIRED
    if isinstance(error, ContentBlockedError):
        return ErrorCategory.CONTENT_BLOCKED
    if isinstance(error, ProviderNotConfiguredError):
        return ErrorCategory.NOT_CONFIGURED
    if isinstance(error, (ParseError, SchemaValidationError)):
        return ErrorCategory.INVALID_RESPONSE
    if isinstance(error, ExportError):
        return ErrorCategory.EXPORT
    if isinstance(error, InputError):
        return ErrorCategory.INPUT
    if isinstance(error, _NETWORK_ERROR_TYPES):
        if isinstance(error, (httpx.TimeoutException, TimeoutError)):
            return ErrorCategory.TIMEOUT
        message = _message_of(error)
        return ErrorCategory.TIMEOUT if "timeout" in message else ErrorCategory.NETWORK

    message = _message_of(error)
    for phrases, category in _MESSAGE_RULES:
        if any(phrase in message for phrase in phrases):
            return category

    status = _status_of(error)
    if status is not None:
        if status == 400:
            return ErrorCategory.BAD_REQUEST
        if status == 401:
            return ErrorCategory.UNAUTHORIZED
        if status == 402:
            return ErrorCategory.PAYMENT_REQUIRED
        if status == 403:
            return ErrorCategory.FORBIDDEN
        if status == 404:
            return ErrorCategory.NOT_FOUND
        if status == 408:
            return ErrorCategory.TIMEOUT
        if status == 429:
            return ErrorCategory.RATE_LIMITED
        if 500 <= status < 600:
            return ErrorCategory.SERVER
    return ErrorCategory.UNKNOWN


def to_user_message(error: object) -> str:
    """User-safe message for ``error``; never echoes provider payloads.

    Input and export errors carry messages written for the user, so those are
    passed through as-is.
    """
    category = classify(error)
    if category in (ErrorCategory.INPUT, ErrorCategory.EXPORT):
        message = str(error) if error is not None else ""
        return message or USER_MESSAGES[category]
    return USER_MESSAGES[category]
