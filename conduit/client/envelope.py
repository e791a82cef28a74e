"""Uniform result shape returned by every request client operation.

A ``ResponseEnvelope`` is either a success carrying ``data`` or a failure
carrying ``error`` and a ``FailureKind``. Envelopes are frozen once built and
are created through :meth:`ResponseEnvelope.ok` and
:meth:`ResponseEnvelope.fail`.
"""

from enum import Enum
from typing import Any, Generic, Self, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator

from conduit.core.exceptions import RequestFailedError

T = TypeVar("T")


class FailureKind(Enum):
    """Classification of a failed request."""

    NETWORK = "NETWORK"
    """The connection could not be established or was reset."""

    TIMEOUT = "TIMEOUT"
    """No response arrived within the configured duration."""

    HTTP = "HTTP"
    """A response arrived with an error status code."""

    PARSE = "PARSE"
    """The response body could not be decoded as JSON."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """The request was rejected before any network I/O."""


class ResponseEnvelope(BaseModel, Generic[T]):
    """Success/data/error/message wrapper for one request attempt.

    Attributes:
        success: Whether the request produced usable data.
        data: Decoded response body; always present on success.
        error: Human-readable failure description on failure.
        message: Server-supplied message, when the body carried one.
        failure: Failure classification on failure.
        status_code: HTTP status when a response was received.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    data: T | None = None
    error: str | None = None
    message: str | None = None
    failure: FailureKind | None = None
    status_code: int | None = None

    @model_validator(mode="after")
    def check_exclusivity(self) -> Self:
        """Enforce that success and failure fields never mix."""
        if self.success:
            if self.error is not None or self.failure is not None:
                msg = "successful envelope cannot carry an error"
                raise ValueError(msg)
            if self.data is None:
                msg = "successful envelope requires data"
                raise ValueError(msg)
        else:
            if not self.error or self.failure is None:
                msg = "failed envelope requires an error and a failure kind"
                raise ValueError(msg)
            if self.data is not None:
                msg = "failed envelope cannot carry data"
                raise ValueError(msg)
        return self

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        status_code: int | None = None,
        message: str | None = None,
    ) -> Self:
        """Build a successful envelope; ``data`` must not be None."""
        return cls(success=True, data=data, status_code=status_code, message=message)

    @classmethod
    def fail(
        cls,
        failure: FailureKind,
        error: str,
        *,
        status_code: int | None = None,
        message: str | None = None,
    ) -> Self:
        """Build a failed envelope."""
        return cls(
            success=False,
            error=error,
            failure=failure,
            status_code=status_code,
            message=message,
        )

    def unwrap(self) -> T | None:
        """Return ``data`` or raise for a failed envelope.

        Raises:
            RequestFailedError: If the envelope is a failure.
        """
        if not self.success:
            raise RequestFailedError(self)
        return self.data

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view without the unset optional keys."""
        return self.model_dump(mode="json", exclude_none=True)
