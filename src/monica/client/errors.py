"""
Typed errors raised by MonicaClient.

Every transport, HTTP and decoding failure is translated into one of these
at the client boundary, so callers never have to know about httpx.
"""
import re
from typing import Optional

GENERIC_SUGGESTION = "Please try again or contact support if the problem persists."


class MonicaAPIError(Exception):
    """Base class for everything MonicaClient raises."""

    message = "An unexpected error occurred"
    recovery_suggestion: Optional[str] = GENERIC_SUGGESTION
    is_retryable = False

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentialsError(MonicaAPIError):
    """HTTP 401: the API token was rejected."""

    message = "Authentication failed. Please check your API token."
    recovery_suggestion = "Please check your API token in settings and try again."


class ForbiddenError(MonicaAPIError):
    message = "Access denied. Your API token may not have sufficient permissions."


class NotFoundError(MonicaAPIError):
    message = "The requested resource was not found"


class RateLimitedError(MonicaAPIError):
    message = "Too many requests. Please wait a moment and try again."
    recovery_suggestion = "Please wait a moment before making another request."
    is_retryable = True


class ServerError(MonicaAPIError):
    """Any 5xx (or otherwise unexpected) status code."""

    recovery_suggestion = "The server is experiencing issues. Please try again later."
    is_retryable = True

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Server error (HTTP {status_code}). Please try again later.")


class ValidationError(MonicaAPIError):
    """A 4xx the server explained, usually a rejected field."""

    def __init__(self, detail: str = "Bad request"):
        self.detail = detail
        super().__init__(f"Invalid request: {detail}")


class NetworkError(MonicaAPIError):
    recovery_suggestion = "Check your internet connection and try again."
    is_retryable = True

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        reason = str(cause) if cause is not None and str(cause) else "no connection"
        super().__init__(f"Network connection failed: {reason}")


class DecodingError(MonicaAPIError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__("Failed to process server response")


def user_message(exc: BaseException) -> str:
    """Human-readable text for any exception, suitable for direct display."""
    if isinstance(exc, MonicaAPIError):
        return exc.message
    return str(exc) or exc.__class__.__name__


_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_TOKEN_RE = re.compile(r"[A-Za-z0-9]{32,}")
_URL_RE = re.compile(r"https?://\S+")


def sanitize_for_log(text: str) -> str:
    """Mask e-mail addresses, token-like strings and URLs before logging."""
    text = _EMAIL_RE.sub("[EMAIL]", text)
    text = _TOKEN_RE.sub("[TOKEN]", text)
    return _URL_RE.sub("[URL]", text)
