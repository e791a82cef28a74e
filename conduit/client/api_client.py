"""Public request client: one method per HTTP verb plus file upload.

Every method builds a :class:`RequestSpec` and hands it to the
:class:`RequestExecutor`. No method raises; callers inspect
``envelope.success`` (or call ``envelope.unwrap()`` to opt into exceptions).

Paths are relative to the configured public prefix::

    async with ApiClient(ClientConfig(base_url="http://localhost:8000")) as api:
        users = await api.get("/users")          # GET http://localhost:8000/api/users
        same = await api.get("/api/users")       # prefix already present, kept as is

Absolute targets (``https://other.host/x`` or ``//other.host/x``) are
rejected with an ``INVALID_REQUEST`` envelope and never sent.
"""

from types import TracebackType
from typing import Any, Self

import httpx
from loguru import logger
from pydantic import ValidationError

from conduit.client.envelope import FailureKind, ResponseEnvelope
from conduit.client.executor import RequestExecutor
from conduit.client.request import (
    HttpMethod,
    RequestSpec,
    UploadPayload,
    is_absolute_target,
)
from conduit.core.config import ClientConfig, Settings
from conduit.core.types import FormScalar, JsonValue


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(str(error["msg"]) for error in exc.errors())


class ApiClient:
    """Typed HTTP client returning a ResponseEnvelope for every call.

    Args:
        config: Immutable client configuration.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        # No connection cap: every call is issued immediately
        self._http_client = httpx.AsyncClient(
            transport=transport,
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=20),
            follow_redirects=True,
        )
        self._executor = RequestExecutor(self.config, self._http_client)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        """Build a client from process settings."""
        return cls(settings.client_config, transport=transport)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release pooled connections."""
        await self._http_client.aclose()

    def resolve_path(self, path: str) -> str | None:
        """Place a caller path under the public prefix.

        Args:
            path: Path relative to the public prefix, optionally already prefixed.

        Returns:
            str | None: The origin-relative target, or None for absolute targets.
        """
        if is_absolute_target(path):
            return None
        if not path.startswith("/"):
            path = "/" + path

        prefix = self.config.public_prefix
        if not prefix:
            return path
        if path == prefix or path.startswith((prefix + "/", prefix + "?")):
            return path
        return prefix + path

    async def request(
        self,
        method: HttpMethod,
        path: str,
        body: JsonValue | UploadPayload = None,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a request with any supported verb.

        Args:
            method: HTTP verb.
            path: Path relative to the public prefix.
            body: JSON-serializable value or UploadPayload.
            headers: Header overrides.
            timeout_ms: Timeout override in milliseconds.

        Returns:
            ResponseEnvelope[Any]: The classified outcome.
        """
        target = self.resolve_path(path)
        if target is None:
            logger.warning("Rejected absolute request target {}", path)
            return ResponseEnvelope.fail(
                FailureKind.INVALID_REQUEST,
                f"Absolute URLs are not allowed, pass a path relative to "
                f"{self.config.public_prefix or '/'}: {path}",
            )

        try:
            spec = RequestSpec(
                method=method,
                path=target,
                body=body,
                headers=headers or {},
                timeout_ms=timeout_ms,
            )
        except ValidationError as exc:
            return ResponseEnvelope.fail(
                FailureKind.INVALID_REQUEST,
                f"Invalid request: {_validation_message(exc)}",
            )

        return await self._executor.execute(spec)

    async def get(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a GET request."""
        return await self.request(
            HttpMethod.GET, path, headers=headers, timeout_ms=timeout_ms
        )

    async def post(
        self,
        path: str,
        body: JsonValue = None,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a POST request with a JSON body."""
        return await self.request(
            HttpMethod.POST, path, body, headers=headers, timeout_ms=timeout_ms
        )

    async def put(
        self,
        path: str,
        body: JsonValue = None,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a PUT request with a JSON body."""
        return await self.request(
            HttpMethod.PUT, path, body, headers=headers, timeout_ms=timeout_ms
        )

    async def patch(
        self,
        path: str,
        body: JsonValue = None,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a PATCH request with a JSON body."""
        return await self.request(
            HttpMethod.PATCH, path, body, headers=headers, timeout_ms=timeout_ms
        )

    async def delete(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """Send a DELETE request."""
        return await self.request(
            HttpMethod.DELETE, path, headers=headers, timeout_ms=timeout_ms
        )

    async def upload_file(
        self,
        path: str,
        file: Any,  # noqa: ANN401 - bytes or binary file object
        extra_fields: dict[str, FormScalar] | None = None,
        *,
        filename: str = "upload",
        content_type: str = "application/octet-stream",
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> ResponseEnvelope[Any]:
        """POST a file as multipart form data.

        The file is sent under the reserved ``file`` field; each extra field
        becomes a sibling part with its value coerced to a string.

        Args:
            path: Path relative to the public prefix.
            file: Raw bytes or a readable binary file object.
            extra_fields: Scalar fields sent alongside the file.
            filename: Name reported for the file part.
            content_type: Media type of the file part.
            headers: Header overrides.
            timeout_ms: Timeout override in milliseconds.

        Returns:
            ResponseEnvelope[Any]: The classified outcome.
        """
        try:
            payload = UploadPayload(
                file=file,
                filename=filename,
                content_type=content_type,
                fields=extra_fields or {},
            )
        except ValidationError as exc:
            return ResponseEnvelope.fail(
                FailureKind.INVALID_REQUEST,
                f"Invalid upload: {_validation_message(exc)}",
            )

        return await self.request(
            HttpMethod.POST, path, payload, headers=headers, timeout_ms=timeout_ms
        )
