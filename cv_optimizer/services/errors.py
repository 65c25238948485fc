"""Exception taxonomy for the optimization flow.

Input errors are rejected immediately, provider errors go through the retry
engine, parse/validation errors end the request, export errors name the
format that failed.
"""

ALLOWED_UPLOAD_TYPES = ("PDF", "DOCX", "TXT")


class CVOptimizerError(Exception):
    """Base class for all errors raised by this package."""


# --- Input errors (never retried) ---


class InputError(CVOptimizerError):
    pass


class MissingFieldError(InputError):
    pass


class FileTooLargeError(InputError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File size must be less than {limit // (1024 * 1024)}MB")


class UnsupportedFormatError(InputError):
    def __init__(self, filename: str | None = None):
        self.filename = filename
        super().__init__(
            f"Unsupported file type. Please upload {', '.join(ALLOWED_UPLOAD_TYPES[:-1])}, "
            f"or {ALLOWED_UPLOAD_TYPES[-1]}."
        )


class ExtractionError(InputError):
    pass


class TrialLimitError(InputError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__("Free trial limit reached. Please sign up to continue.")


# --- Provider errors ---


class ProviderError(CVOptimizerError):
    """Failure talking to the text-generation provider."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ProviderError):
    pass


class QuotaExceededError(ProviderError):
    pass


class ContentBlockedError(ProviderError):
    pass


class EmptyResponseError(ProviderError):
    pass


class ProviderNotConfiguredError(ProviderError):
    pass


# --- Output errors ---


class ParseError(CVOptimizerError):
    """Model output could not be reduced to a JSON object."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class SchemaValidationError(CVOptimizerError):
    """Parsed JSON does not have the StructuredResume shape."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ExportError(CVOptimizerError):
    def __init__(self, fmt: str, reason: str = ""):
        self.fmt = fmt
        self.reason = reason
        message = f"Failed to generate {fmt.upper()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# Kinds that must never be retried, whatever their status code says
PERMANENT_ERRORS = (
    InputError,
    QuotaExceededError,
    ContentBlockedError,
    EmptyResponseError,
    ProviderNotConfiguredError,
    ParseError,
    SchemaValidationError,
    ExportError,
)
