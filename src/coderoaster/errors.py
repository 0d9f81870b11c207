"""Standardized error types for the commentary panel.

This module provides a hierarchy of error classes with consistent
dictionary serialization, shared by the completion client and the
refresh orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes carried by :class:`CommentaryError`."""

    # Validation errors
    NO_ACTIVE_DOCUMENT = "no_active_document"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    FILE_TOO_LARGE = "file_too_large"
    EMPTY_FILE = "empty_file"

    # Configuration errors
    NEEDS_CONFIGURATION = "needs_configuration"
    INVALID_ENDPOINT = "invalid_endpoint"

    # API errors
    TRANSPORT_FAILED = "transport_failed"
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    REQUEST_FAILED = "request_failed"
    MALFORMED_RESPONSE = "malformed_response"

    # General errors
    INTERNAL_ERROR = "internal_error"


class NoticeKind(str, Enum):
    """Notices the renderer shows instead of a commentary."""

    NO_ACTIVE_DOCUMENT = ErrorCode.NO_ACTIVE_DOCUMENT
    UNSUPPORTED_FILE_TYPE = ErrorCode.UNSUPPORTED_FILE_TYPE
    FILE_TOO_LARGE = ErrorCode.FILE_TOO_LARGE
    EMPTY_FILE = ErrorCode.EMPTY_FILE
    NEEDS_CONFIGURATION = ErrorCode.NEEDS_CONFIGURATION


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class CommentaryError(Exception):
    """Base exception class for all panel errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for logging and renderer payloads."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Validation Errors
# -----------------------------------------------------------------------------

@dataclass
class ValidationError(CommentaryError):
    """Raised when the active document cannot be commented on.

    Recovered locally by rendering a notice; never retried automatically.
    """

    error_code: str = field(default=ErrorCode.UNSUPPORTED_FILE_TYPE)
    message: str = field(default="The active document cannot be reviewed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    severity: ClassVar[str] = "warning"

    @property
    def notice_kind(self) -> NoticeKind:
        return NoticeKind(self.error_code)

    @classmethod
    def no_active_document(cls) -> "ValidationError":
        return cls(
            error_code=ErrorCode.NO_ACTIVE_DOCUMENT,
            message="No file is currently open",
            suggestion="Open a source file to get a commentary",
        )

    @classmethod
    def unsupported_type(cls, identity: str, extension: str) -> "ValidationError":
        return cls(
            error_code=ErrorCode.UNSUPPORTED_FILE_TYPE,
            message=f"Files of type '{extension or '(none)'}' are not supported",
            details={"identity": identity, "extension": extension},
        )

    @classmethod
    def too_large(cls, identity: str, size: int, limit: int) -> "ValidationError":
        return cls(
            error_code=ErrorCode.FILE_TOO_LARGE,
            message=f"File is too large ({size} bytes, limit {limit} bytes)",
            details={"identity": identity, "size": size, "limit": limit},
        )

    @classmethod
    def empty(cls, identity: str) -> "ValidationError":
        return cls(
            error_code=ErrorCode.EMPTY_FILE,
            message="File is empty",
            details={"identity": identity},
        )


@dataclass
class ConfigurationError(CommentaryError):
    """Raised when the API credential or endpoint is missing or invalid."""

    error_code: str = field(default=ErrorCode.NEEDS_CONFIGURATION)
    message: str = field(default="API configuration required")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Configure the API base URL, model name and API key")


# -----------------------------------------------------------------------------
# API Errors
# -----------------------------------------------------------------------------

@dataclass
class ApiClientError(CommentaryError):
    """Base class for failures talking to the completion endpoint.

    Surfaced to the renderer as a terminal stream error. Never retried
    silently; the next trigger is the only retry path.
    """

    error_code: str = field(default=ErrorCode.REQUEST_FAILED)
    message: str = field(default="API request failed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    status_code: int | None = field(default=None)
    is_network_error: bool = field(default=False)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


@dataclass
class TransportError(ApiClientError):
    """No HTTP response was received (connectivity, DNS, timeout)."""

    error_code: str = field(default=ErrorCode.TRANSPORT_FAILED)
    message: str = field(default="Network error. Please check your internet connection.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check your connection and the configured base URL")

    status_code: int | None = field(default=None)
    is_network_error: bool = field(default=True)


@dataclass
class AuthError(ApiClientError):
    """HTTP 401 from the completion endpoint."""

    error_code: str = field(default=ErrorCode.AUTH_FAILED)
    message: str = field(default="Invalid API key. Please check your API key.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Update the stored API key")

    status_code: int | None = field(default=401)


@dataclass
class RateLimitError(ApiClientError):
    """HTTP 429 from the completion endpoint."""

    error_code: str = field(default=ErrorCode.RATE_LIMITED)
    message: str = field(default="Rate limit exceeded. Please try again later.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    status_code: int | None = field(default=429)


@dataclass
class ServerError(ApiClientError):
    """HTTP 5xx from the completion endpoint."""

    error_code: str = field(default=ErrorCode.SERVER_ERROR)
    message: str = field(default="API server error. Please try again later.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    status_code: int | None = field(default=500)


@dataclass
class RequestError(ApiClientError):
    """Any other non-2xx status."""

    error_code: str = field(default=ErrorCode.REQUEST_FAILED)
    message: str = field(default="API request failed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


@dataclass
class MalformedResponseError(ApiClientError):
    """The response body did not have the expected chat-completion shape."""

    error_code: str = field(default=ErrorCode.MALFORMED_RESPONSE)
    message: str = field(default="Invalid response format from API")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


def error_for_status(status_code: int, reason: str = "") -> ApiClientError:
    """Map a non-2xx HTTP status onto the error taxonomy."""

    if status_code == 401:
        return AuthError()
    if status_code == 429:
        return RateLimitError()
    if status_code >= 500:
        return ServerError(status_code=status_code)
    detail = f"{status_code} {reason}".strip()
    return RequestError(message=f"API error: {detail}", status_code=status_code)


__all__ = [
    "ApiClientError",
    "AuthError",
    "CommentaryError",
    "ConfigurationError",
    "ErrorCode",
    "MalformedResponseError",
    "NoticeKind",
    "RateLimitError",
    "RequestError",
    "ServerError",
    "TransportError",
    "ValidationError",
    "error_for_status",
]
