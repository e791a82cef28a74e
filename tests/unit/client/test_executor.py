"""Unit tests for conduit.client.executor.

The executor is exercised through an httpx MockTransport so every failure
class (timeout, network, HTTP status, undecodable body) can be produced
without a real server.
"""

import asyncio
import io
from collections.abc import Awaitable, Callable

import httpx
import orjson
import pytest
import pytest_check as check

from conduit.client.envelope import FailureKind
from conduit.client.executor import RequestExecutor, extract_server_message
from conduit.client.request import HttpMethod, RequestSpec, UploadPayload
from conduit.core.config import ClientConfig
from conduit.core.context import correlation_scope


type Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def _executor(
    handler: Handler, config: ClientConfig | None = None
) -> tuple[RequestExecutor, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = RequestExecutor(
        config or ClientConfig(base_url="http://backend.test", timeout_ms=200),
        http_client,
    )
    return executor, http_client


@pytest.mark.unit
class TestExtractServerMessage:
    """Tests for server message extraction from error bodies."""

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            ({"message": "User not found"}, "User not found"),
            ({"error": "bad input"}, "bad input"),
            ({"detail": "Not Found"}, "Not Found"),
            ({"message": "", "error": "fallback"}, "fallback"),
            ({"message": 42}, None),
            ({"other": "x"}, None),
            (["message"], None),
            ("plain", None),
        ],
    )
    def test_extraction(self, payload: object, expected: str | None) -> None:
        """The first non-empty string under a known key is used."""
        assert extract_server_message(payload) == expected


@pytest.mark.unit
class TestBuildHeaders:
    """Tests for header merging."""

    def test_json_defaults(self) -> None:
        """JSON requests accept and send JSON."""
        executor, _ = _executor(lambda r: httpx.Response(200))
        headers = executor.build_headers(RequestSpec(method=HttpMethod.GET, path="/a"))

        check.equal(headers["accept"], "application/json")
        check.equal(headers["content-type"], "application/json")

    def test_upload_leaves_content_type_to_httpx(self) -> None:
        """Multipart requests must not carry the JSON content type."""
        executor, _ = _executor(lambda r: httpx.Response(200))
        spec = RequestSpec(
            method=HttpMethod.POST, path="/a", body=UploadPayload(file=b"x")
        )

        assert "content-type" not in executor.build_headers(spec)

    def test_precedence(self) -> None:
        """Caller headers win over configured headers, which win over defaults."""
        config = ClientConfig(
            base_url="http://backend.test",
            default_headers={"Accept": "text/plain", "X-App": "web", "X-Env": "dev"},
        )
        executor, _ = _executor(lambda r: httpx.Response(200), config)
        spec = RequestSpec(method=HttpMethod.GET, path="/a", headers={"X-Env": "qa"})

        headers = executor.build_headers(spec)

        check.equal(headers["accept"], "text/plain")
        check.equal(headers["x-app"], "web")
        check.equal(headers["x-env"], "qa")

    def test_correlation_id_propagated(self) -> None:
        """The correlation ID of the current context is forwarded."""
        executor, _ = _executor(lambda r: httpx.Response(200))
        spec = RequestSpec(method=HttpMethod.GET, path="/a")

        with correlation_scope("corr-123"):
            headers = executor.build_headers(spec)

        assert headers["x-correlation-id"] == "corr-123"

    def test_no_correlation_id_outside_scope(self) -> None:
        """Without a bound correlation ID no header is added."""
        executor, _ = _executor(lambda r: httpx.Response(200))

        headers = executor.build_headers(RequestSpec(method=HttpMethod.GET, path="/a"))

        assert "x-correlation-id" not in headers


@pytest.mark.unit
class TestClassifyResponse:
    """Tests for turning a received response into an envelope."""

    @pytest.fixture
    def executor(self) -> RequestExecutor:
        """Executor whose transport is never used."""
        executor, _ = _executor(lambda r: httpx.Response(200))
        return executor

    def test_success_with_json(self, executor: RequestExecutor) -> None:
        """A 2xx JSON body becomes data."""
        envelope = executor.classify_response(
            httpx.Response(200, json={"id": 1, "message": "fetched"})
        )

        check.is_true(envelope.success)
        check.equal(envelope.data, {"id": 1, "message": "fetched"})
        check.equal(envelope.message, "fetched")
        check.equal(envelope.status_code, 200)

    @pytest.mark.parametrize(
        ("status_code", "content"),
        [(204, b""), (200, b"   "), (200, b"null"), (201, b" null\n")],
    )
    def test_success_without_data_is_parse_failure(
        self, executor: RequestExecutor, status_code: int, content: bytes
    ) -> None:
        """A 2xx body that decodes to nothing cannot become a success."""
        envelope = executor.classify_response(
            httpx.Response(status_code, content=content)
        )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.PARSE)
        check.is_none(envelope.data)
        check.equal(envelope.status_code, status_code)

    def test_success_with_falsy_json(self, executor: RequestExecutor) -> None:
        """JSON false and empty containers are data."""
        for content, data in ((b"false", False), (b"[]", []), (b"{}", {})):
            envelope = executor.classify_response(
                httpx.Response(200, content=content)
            )

            check.is_true(envelope.success)
            check.equal(envelope.data, data)

    def test_success_with_malformed_json(self, executor: RequestExecutor) -> None:
        """A 2xx body that is not JSON is a parse failure."""
        envelope = executor.classify_response(httpx.Response(200, content=b"{oops"))

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.PARSE)
        check.equal(envelope.error, "Failed to parse response body as JSON")
        check.equal(envelope.status_code, 200)

    def test_error_status_with_server_message(self, executor: RequestExecutor) -> None:
        """The server message is surfaced for error statuses."""
        envelope = executor.classify_response(
            httpx.Response(404, json={"message": "User not found"})
        )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.HTTP)
        check.equal(envelope.error, "HTTP 404: User not found")
        check.equal(envelope.message, "User not found")
        check.equal(envelope.status_code, 404)

    def test_error_status_with_text_body(self, executor: RequestExecutor) -> None:
        """Without a JSON message the reason phrase is used."""
        envelope = executor.classify_response(
            httpx.Response(500, content=b"<html>oops</html>")
        )

        check.equal(envelope.failure, FailureKind.HTTP)
        check.equal(envelope.error, "HTTP 500: Internal Server Error")
        check.is_none(envelope.message)


@pytest.mark.unit
class TestExecute:
    """Tests for end-to-end execution through a mock transport."""

    async def test_sends_json_body(self) -> None:
        """JSON bodies are serialized and sent to base_url + path."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": 9})

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(
                    method=HttpMethod.POST, path="/api/users", body={"name": "Ada"}
                )
            )

        check.is_true(envelope.success)
        check.equal(envelope.data, {"id": 9})
        check.equal(str(seen[0].url), "http://backend.test/api/users")
        check.equal(seen[0].method, "POST")
        check.equal(orjson.loads(seen[0].content), {"name": "Ada"})

    async def test_timeout(self) -> None:
        """A backend slower than the timeout yields a TIMEOUT failure."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.GET, path="/slow", timeout_ms=50)
            )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.TIMEOUT)
        check.equal(envelope.error, "Request timed out after 50ms")
        check.is_none(envelope.status_code)

    async def test_default_timeout_from_config(self) -> None:
        """Without an override the configured timeout applies."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200)

        config = ClientConfig(base_url="http://backend.test", timeout_ms=30)
        executor, http_client = _executor(handler, config)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.GET, path="/slow")
            )

        assert envelope.error == "Request timed out after 30ms"

    async def test_httpx_timeout_is_classified_as_timeout(self) -> None:
        """Timeouts reported by httpx itself map to TIMEOUT."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.GET, path="/a")
            )

        assert envelope.failure == FailureKind.TIMEOUT

    async def test_network_error(self) -> None:
        """Connection failures yield a NETWORK failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.GET, path="/a")
            )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.NETWORK)
        check.equal(envelope.error, "Network error: Connection refused")

    async def test_undecodable_content_encoding(self) -> None:
        """A body that cannot be decompressed is a parse failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not gzip"
            )

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.GET, path="/a")
            )

        assert envelope.failure == FailureKind.PARSE

    async def test_unserializable_body_is_rejected(self) -> None:
        """Bodies orjson cannot encode never reach the network."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.POST, path="/a", body={"x": object()})
            )

        check.equal(envelope.failure, FailureKind.INVALID_REQUEST)
        check.equal(seen, [])

    async def test_non_ascii_header_is_rejected(self) -> None:
        """Header values httpx cannot encode never reach the network."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        executor, http_client = _executor(handler)
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(
                    method=HttpMethod.GET, path="/a", headers={"X-Name": "José"}
                )
            )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.INVALID_REQUEST)
        check.equal(seen, [])

    async def test_text_mode_upload_is_rejected(self) -> None:
        """A text stream that slipped past validation is still refused."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        executor, http_client = _executor(handler)
        payload = UploadPayload.model_construct(
            file=io.StringIO("hi"),
            filename="notes.txt",
            content_type="text/plain",
            fields={},
        )
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.POST, path="/upload", body=payload)
            )

        check.is_false(envelope.success)
        check.equal(envelope.failure, FailureKind.INVALID_REQUEST)
        check.equal(seen, [])

    async def test_upload_is_multipart(self) -> None:
        """Uploads send the file part and extra fields as multipart form data."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"stored": True})

        executor, http_client = _executor(handler)
        payload = UploadPayload(
            file=b"PNGDATA",
            filename="avatar.png",
            content_type="image/png",
            fields={"userId": 7},
        )
        async with http_client:
            envelope = await executor.execute(
                RequestSpec(method=HttpMethod.POST, path="/api/upload", body=payload)
            )

        request = seen[0]
        body = request.content
        check.is_true(envelope.success)
        check.is_true(
            request.headers["content-type"].startswith("multipart/form-data")
        )
        check.is_in(b'name="file"; filename="avatar.png"', body)
        check.is_in(b"Content-Type: image/png", body)
        check.is_in(b"PNGDATA", body)
        check.is_in(b'name="userId"\r\n\r\n7\r\n', body)
