"""Request descriptions consumed by the executor.

A ``RequestSpec`` is built per call by :class:`~conduit.client.api_client.ApiClient`
and discarded once the request completes. ``UploadPayload`` describes a
multipart upload: the file goes under a reserved field name and every extra
field becomes a sibling part.
"""

import io
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from conduit.core.constants import UPLOAD_FILE_FIELD
from conduit.core.types import FormScalar


class HttpMethod(StrEnum):
    """HTTP verbs the client issues."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


WEB_SCHEMES = frozenset({"http", "https"})


def is_absolute_target(path: str) -> bool:
    """Whether a path names its own origin (``http://...`` or ``//host``).

    Other ``name:`` prefixes such as ``users:1`` are ordinary path segments.
    """
    if path.startswith("//"):
        return True
    parts = urlsplit(path)
    return parts.scheme in WEB_SCHEMES or bool(parts.netloc)


def coerce_form_value(value: FormScalar) -> str:
    """Render an extra upload field as the string sent on the wire.

    Booleans use the lowercase JSON spelling, everything else ``str()``.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class UploadPayload(BaseModel):
    """A binary file plus scalar fields sent alongside it.

    Attributes:
        file: Raw bytes or a readable binary file object.
        filename: Name reported for the file part.
        content_type: Media type of the file part.
        fields: Extra scalar fields; must not use the reserved file field name.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    file: Any
    filename: str = "upload"
    content_type: str = "application/octet-stream"
    fields: dict[str, FormScalar] = Field(default_factory=dict)

    @field_validator("file", mode="before")
    @classmethod
    def check_file(cls, v: Any) -> Any:  # noqa: ANN401 - bytes or file object
        """Accept bytes-like values or open binary objects exposing ``read``."""
        if isinstance(v, bytearray | memoryview):
            return bytes(v)
        if isinstance(v, bytes):
            return v
        if isinstance(v, io.TextIOBase):
            msg = "file must be opened in binary mode"
            raise ValueError(msg)  # noqa: TRY004 - surfaced as a validation error
        if getattr(v, "closed", False):
            msg = "file is closed"
            raise ValueError(msg)
        if callable(getattr(v, "read", None)):
            return v
        msg = f"file must be bytes or a binary file object, got {type(v).__name__}"
        raise ValueError(msg)

    @field_validator("fields", mode="after")
    @classmethod
    def check_reserved_field(cls, v: dict[str, FormScalar]) -> dict[str, FormScalar]:
        """Reject extra fields that collide with the file part."""
        if UPLOAD_FILE_FIELD in v:
            msg = f"field name {UPLOAD_FILE_FIELD!r} is reserved for the uploaded file"
            raise ValueError(msg)
        return v

    def form_fields(self) -> dict[str, str]:
        """Extra fields with values coerced to strings."""
        return {name: coerce_form_value(value) for name, value in self.fields.items()}


class RequestSpec(BaseModel):
    """Everything the executor needs to issue one request.

    Attributes:
        method: HTTP verb.
        path: Target path, relative to the configured origin.
        body: JSON-serializable value or an UploadPayload.
        headers: Header overrides; win over default and configured headers.
        timeout_ms: Timeout override in milliseconds.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: HttpMethod
    path: str
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_ms: int | None = Field(default=None, gt=0)

    @field_validator("path", mode="after")
    @classmethod
    def check_relative(cls, v: str) -> str:
        """Only origin-relative paths are accepted."""
        if is_absolute_target(v) or not v.startswith("/"):
            msg = f"path must be relative to the configured origin, got {v!r}"
            raise ValueError(msg)
        return v

    @property
    def is_upload(self) -> bool:
        """Whether the body is sent as multipart form data."""
        return isinstance(self.body, UploadPayload)
