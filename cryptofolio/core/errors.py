"""Structured error codes and exceptions for the assistant flow.

Provides semantic error codes that can be used for:
- User-facing notices (generic "try again" vs. inline validation)
- Server-side diagnostics
- Mapping to HTTP status at the API edge
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes for assistant and store failures."""

    # Configuration errors
    CREDENTIALS_MISSING = "CREDENTIALS_MISSING"

    # Input errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    NOT_FOUND = "NOT_FOUND"

    # Upstream model errors
    UPSTREAM_HTTP_ERROR = "UPSTREAM_HTTP_ERROR"
    UPSTREAM_MALFORMED = "UPSTREAM_MALFORMED"
    UPSTREAM_UNREACHABLE = "UPSTREAM_UNREACHABLE"

    # Store errors
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

    # Generic errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AssistantError(Exception):
    """Exception with structured error code and message."""

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[dict] = None
    ):
        self.error_code = error_code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AssistantError):
    """Upstream model credential is not provisioned. Fatal, never retried."""

    default_code = ErrorCode.CREDENTIALS_MISSING


class ValidationError(AssistantError):
    """Input rejected before any network call."""

    default_code = ErrorCode.VALIDATION_ERROR


class UpstreamError(AssistantError):
    """Model endpoint returned a non-success status or an unusable body."""

    default_code = ErrorCode.UPSTREAM_HTTP_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[dict] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class PersistenceError(AssistantError):
    """A store write or read failed."""

    default_code = ErrorCode.PERSISTENCE_FAILED


# Error code to user-facing notice mapping
ERROR_CODE_MESSAGES = {
    ErrorCode.CREDENTIALS_MISSING: {
        "message": "The assistant is not configured yet",
        "remediation": "Set GEMINI_API_KEY in the server environment and restart."
    },
    ErrorCode.VALIDATION_ERROR: {
        "message": "Request validation failed",
        "remediation": "Check the submitted fields and try again."
    },
    ErrorCode.DUPLICATE_ENTRY: {
        "message": "That item already exists",
        "remediation": None
    },
    ErrorCode.NOT_FOUND: {
        "message": "Item not found",
        "remediation": None
    },
    ErrorCode.UPSTREAM_HTTP_ERROR: {
        "message": "Failed to get AI response. Please try again.",
        "remediation": "Wait a few seconds and try again."
    },
    ErrorCode.UPSTREAM_MALFORMED: {
        "message": "Failed to get AI response. Please try again.",
        "remediation": "Wait a few seconds and try again."
    },
    ErrorCode.UPSTREAM_UNREACHABLE: {
        "message": "Failed to get AI response. Please try again.",
        "remediation": "Check network connectivity and try again."
    },
    ErrorCode.PERSISTENCE_FAILED: {
        "message": "Could not save to the database",
        "remediation": "Check the server logs for details."
    },
    ErrorCode.UNKNOWN_ERROR: {
        "message": "An unexpected error occurred",
        "remediation": "Check system logs for details."
    },
}


def get_error_message(error_code: ErrorCode) -> dict:
    """Get user-facing message and remediation for an error code."""
    return ERROR_CODE_MESSAGES.get(
        error_code,
        {
            "message": "An error occurred",
            "remediation": "Contact support if the issue persists."
        }
    )
