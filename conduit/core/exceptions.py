"""Structured exception hierarchy for consistent error handling.

This module defines the exception system for Conduit. The request client
itself never raises across its public surface (failures travel inside the
response envelope); these exceptions cover configuration-time errors, edge
forwarding failures and callers that explicitly opt into raising.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **ConduitError**: Base exception with rich context and fingerprinting
- **Specialized exceptions**: Configuration, upstream and request failures
"""

import hashlib
import traceback
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from conduit.client.envelope import ResponseEnvelope


class ErrorCode(Enum):
    """Standardized error codes for Conduit."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Static configuration (rewrite rules, origins) is malformed."""

    # Edge forwarding errors
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    """The backend origin could not be reached."""

    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    """The backend origin did not answer in time."""

    # Client errors
    REQUEST_FAILED = "REQUEST_FAILED"
    """A client request produced a failed response envelope."""


class Severity(Enum):
    """Severity levels for errors in Conduit."""

    LOW = "LOW"
    """Low severity errors that don't significantly impact functionality."""

    MEDIUM = "MEDIUM"
    """Medium severity errors that may affect some features but not critical ops."""

    HIGH = "HIGH"
    """High severity errors impacting critical functionality."""

    CRITICAL = "CRITICAL"
    """Critical errors requiring immediate attention, may cause system failures."""


class ConduitError(Exception):
    """Base exception class for all Conduit exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]  # Exclude this frame

        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Returns:
            str: A hash string built from the error type and raising location
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"

        for frame in relevant_frames:
            if "site-packages" not in frame and "conduit/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ConfigurationError(ConduitError):
    """Exception raised when static configuration is malformed.

    Raised while building rewrite rules or other startup-time structures,
    never while serving a request.

    Args:
        message: Description of the configuration problem
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.CONFIGURATION_ERROR, message, Severity.HIGH, context, cause
        )


class UpstreamError(ConduitError):
    """Exception raised when the edge cannot obtain a backend response.

    Args:
        message: Description of the forwarding failure
        timed_out: Whether the backend failed to answer in time
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        *,
        timed_out: bool = False,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        error_code = (
            ErrorCode.UPSTREAM_TIMEOUT if timed_out else ErrorCode.UPSTREAM_UNAVAILABLE
        )
        super().__init__(error_code, message, Severity.HIGH, context, cause)
        self.timed_out = timed_out


class RequestFailedError(ConduitError):
    """Exception raised by ``ResponseEnvelope.unwrap`` for failed envelopes.

    The request client never raises on its own; callers who prefer
    exceptions convert a failed envelope with ``unwrap()``.

    Args:
        envelope: The failed response envelope
    """

    def __init__(self, envelope: "ResponseEnvelope[Any]") -> None:
        context: dict[str, Any] = {
            "failure": envelope.failure.value if envelope.failure else None,
        }
        if envelope.status_code is not None:
            context["status_code"] = envelope.status_code
        super().__init__(
            ErrorCode.REQUEST_FAILED,
            envelope.error or "Request failed",
            Severity.MEDIUM,
            context,
        )
        self.envelope = envelope
