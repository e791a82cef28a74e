"""Single-request execution with failure classification.

``RequestExecutor.execute`` turns a :class:`RequestSpec` into exactly one
:class:`ResponseEnvelope`. Transport errors, timeouts, error statuses and
undecodable bodies are all caught here and reported through the envelope;
nothing raised by httpx or orjson reaches the caller.

Classification order:
1. request cannot be built (unserializable body, bad URL, non-ASCII header,
   unusable upload file) -> INVALID_REQUEST
2. timer fires or httpx reports a timeout -> TIMEOUT
3. any other transport failure before a response -> NETWORK
4. non-2xx response -> HTTP (with the server message when the body has one)
5. 2xx response whose body is not JSON, is empty or is JSON null -> PARSE
6. otherwise -> success
"""

import asyncio
import time
from contextlib import suppress
from typing import Any

import httpx
import orjson
from loguru import logger

from conduit.client.envelope import FailureKind, ResponseEnvelope
from conduit.client.request import RequestSpec, UploadPayload
from conduit.core.config import ClientConfig
from conduit.core.constants import (
    CORRELATION_ID_HEADER,
    MILLISECONDS_PER_SECOND,
    UPLOAD_FILE_FIELD,
)
from conduit.core.context import RequestContext
from conduit.core.observability import (
    HTTP_METHOD_ATTR,
    URL_ATTR,
    record_outcome,
    trace_operation,
)

JSON_CONTENT_TYPE = "application/json"

# Keys checked, in order, for a human-readable message in a JSON error body
SERVER_MESSAGE_KEYS = ("message", "error", "detail")


def extract_server_message(payload: object) -> str | None:
    """Pull a human-readable message out of a decoded error body.

    Args:
        payload: Decoded JSON body.

    Returns:
        str | None: The first non-empty string under a known key.
    """
    if not isinstance(payload, dict):
        return None
    for key in SERVER_MESSAGE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class RequestExecutor:
    """Builds, sends, times out and classifies single HTTP requests.

    The executor holds only immutable configuration and the shared httpx
    client, so any number of ``execute`` calls may run concurrently.

    Args:
        config: Client configuration (origin, default timeout, headers).
        http_client: httpx client used to send requests.
    """

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient) -> None:
        self.config = config
        self._http_client = http_client

    def build_headers(self, spec: RequestSpec) -> httpx.Headers:
        """Merge default, configured, context and caller headers.

        Caller overrides win. Uploads get no Content-Type so httpx can
        generate the multipart boundary.
        """
        headers = httpx.Headers({"Accept": JSON_CONTENT_TYPE})
        if not spec.is_upload:
            headers["Content-Type"] = JSON_CONTENT_TYPE
        headers.update(self.config.default_headers)
        if correlation_id := RequestContext.get_correlation_id():
            headers[CORRELATION_ID_HEADER] = correlation_id
        headers.update(spec.headers)
        return headers

    def build_request(self, spec: RequestSpec, timeout_s: float) -> httpx.Request:
        """Serialize the body and build the httpx request.

        Raises:
            orjson.JSONEncodeError: If a JSON body cannot be serialized.
            httpx.InvalidURL: If the target URL is malformed.
            UnicodeEncodeError: If a header value is not ASCII.
            TypeError: If the upload file is not opened in binary mode.
            ValueError: If the upload file is already closed.
        """
        url = self.config.base_url + spec.path
        headers = self.build_headers(spec)
        timeout = httpx.Timeout(timeout_s)

        if isinstance(spec.body, UploadPayload):
            upload = spec.body
            return self._http_client.build_request(
                spec.method.value,
                url,
                headers=headers,
                files={
                    UPLOAD_FILE_FIELD: (
                        upload.filename,
                        upload.file,
                        upload.content_type,
                    )
                },
                data=upload.form_fields(),
                timeout=timeout,
            )

        content = None if spec.body is None else orjson.dumps(spec.body)
        return self._http_client.build_request(
            spec.method.value, url, headers=headers, content=content, timeout=timeout
        )

    async def execute(self, spec: RequestSpec) -> ResponseEnvelope[Any]:
        """Issue one request and classify its outcome.

        Args:
            spec: The request to send.

        Returns:
            ResponseEnvelope[Any]: Exactly one envelope; never raises for
                transport, timeout or parsing failures.
        """
        timeout_ms = spec.timeout_ms or self.config.timeout_ms
        timeout_s = timeout_ms / MILLISECONDS_PER_SECOND
        log = logger.bind(method=spec.method.value, path=spec.path)

        try:
            request = self.build_request(spec, timeout_s)
        except (
            orjson.JSONEncodeError,
            httpx.InvalidURL,
            UnicodeEncodeError,
            TypeError,
            ValueError,
        ) as exc:
            log.warning("Request rejected before sending: {}", exc)
            return ResponseEnvelope.fail(
                FailureKind.INVALID_REQUEST, f"Invalid request: {exc}"
            )

        start_time = time.perf_counter()
        with trace_operation(
            "http.client.request",
            **{HTTP_METHOD_ATTR: spec.method.value, URL_ATTR: str(request.url)},
        ) as span:
            envelope = await self._send(request, timeout_ms, timeout_s)
            failure = envelope.failure.value if envelope.failure else None
            record_outcome(span, status_code=envelope.status_code, failure=failure)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = log.bind(status_code=envelope.status_code, duration_ms=duration_ms)
        if envelope.success:
            log.debug("Request completed")
        else:
            log.bind(failure=failure).warning("Request failed: {}", envelope.error)
        return envelope

    async def _send(
        self, request: httpx.Request, timeout_ms: int, timeout_s: float
    ) -> ResponseEnvelope[Any]:
        try:
            # Cancelling send() on expiry closes the underlying connection
            async with asyncio.timeout(timeout_s):
                response = await self._http_client.send(request)
        except (TimeoutError, httpx.TimeoutException):
            return ResponseEnvelope.fail(
                FailureKind.TIMEOUT, f"Request timed out after {timeout_ms}ms"
            )
        except httpx.DecodingError as exc:
            return ResponseEnvelope.fail(
                FailureKind.PARSE, f"Failed to decode response body: {exc}"
            )
        except httpx.RequestError as exc:
            detail = str(exc) or type(exc).__name__
            return ResponseEnvelope.fail(
                FailureKind.NETWORK, f"Network error: {detail}"
            )

        return self.classify_response(response)

    def classify_response(self, response: httpx.Response) -> ResponseEnvelope[Any]:
        """Convert a received response into an envelope.

        Args:
            response: A fully read httpx response.

        Returns:
            ResponseEnvelope[Any]: Success, HTTP failure or parse failure.
        """
        status_code = response.status_code

        if not response.is_success:
            server_message = None
            with suppress(orjson.JSONDecodeError):
                server_message = extract_server_message(orjson.loads(response.content))
            reason = response.reason_phrase or "error"
            error = (
                f"HTTP {status_code}: {server_message}"
                if server_message
                else f"HTTP {status_code}: {reason}"
            )
            return ResponseEnvelope.fail(
                FailureKind.HTTP,
                error,
                status_code=status_code,
                message=server_message,
            )

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            return ResponseEnvelope.fail(
                FailureKind.PARSE,
                "Failed to parse response body as JSON",
                status_code=status_code,
            )
        if data is None:
            return ResponseEnvelope.fail(
                FailureKind.PARSE,
                "Response body is JSON null, expected a value",
                status_code=status_code,
            )

        message = data.get("message") if isinstance(data, dict) else None
        return ResponseEnvelope.ok(
            data,
            status_code=status_code,
            message=message if isinstance(message, str) else None,
        )
