"""Forwarding of rewritten paths to the backend origin.

Requests whose path matches a rewrite rule never reach the local routes:
they are replayed against the rule's origin with httpx and the backend
response is relayed back unchanged apart from connection-level headers.
Everything else falls through to the local application.

Backend failures are answered by the edge itself: 502 when the origin cannot
be reached, 504 when it does not answer within ``proxy_timeout_ms``.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

import httpx
from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from conduit.api.constants import (
    FORWARDED_REQUEST_SKIP_HEADERS,
    RELAYED_RESPONSE_SKIP_HEADERS,
)
from conduit.api.middleware.error_handler import (
    app_settings,
    conduit_error_response,
)
from conduit.api.routing import PathRewriteRouter
from conduit.core.constants import MILLISECONDS_PER_SECOND
from conduit.core.exceptions import UpstreamError


def request_target(request: Request) -> str:
    """Inbound path and query string exactly as the client sent them."""
    raw_path: bytes = request.scope.get("raw_path") or request.url.path.encode()
    target = raw_path.decode("latin-1")
    if query := request.scope.get("query_string", b""):
        target += "?" + query.decode("latin-1")
    return target


def forwarded_headers(request: Request) -> list[tuple[str, str]]:
    """Request headers to send upstream, plus X-Forwarded-* annotations."""
    headers = [
        (name, value)
        for name, value in request.headers.items()
        if name.lower() not in FORWARDED_REQUEST_SKIP_HEADERS
        and not name.lower().startswith("x-forwarded-")
    ]

    client_host = request.client.host if request.client else None
    prior_for = request.headers.get("x-forwarded-for")
    forwarded_for = ", ".join(v for v in (prior_for, client_host) if v)
    if forwarded_for:
        headers.append(("x-forwarded-for", forwarded_for))
    if host := request.headers.get("host"):
        headers.append(("x-forwarded-host", host))
    headers.append(("x-forwarded-proto", request.url.scheme))
    return headers


def relay_response(upstream: httpx.Response) -> Response:
    """Copy a backend response into a Starlette response."""
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in upstream.headers.multi_items():
        if name.lower() not in RELAYED_RESPONSE_SKIP_HEADERS:
            response.headers.append(name, value)
    return response


class PathRewriteMiddleware(BaseHTTPMiddleware):
    """Forward requests matching a rewrite rule to the backend origin.

    Args:
        app: The ASGI application to wrap.
        router: Rewrite rules in priority order.
        http_client: httpx client used for forwarding.
        proxy_timeout_ms: Total time allowed for the backend to answer.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        router: PathRewriteRouter,
        http_client: httpx.AsyncClient,
        proxy_timeout_ms: int,
    ) -> None:
        super().__init__(app)
        self.router = router
        self.http_client = http_client
        self.proxy_timeout_ms = proxy_timeout_ms

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Forward a matching request or pass it to the local application.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The relayed backend response, an edge error response,
                or the local response.
        """
        url = self.router.resolve(request_target(request))
        if url is None:
            return await call_next(request)

        try:
            upstream = await self.forward(request, url)
        except UpstreamError as exc:
            logger.warning(
                "Forwarding failed: {}",
                exc.message,
                target=url,
                error_code=exc.error_code,
                fingerprint=exc.fingerprint,
            )
            return conduit_error_response(app_settings(request), exc)

        return relay_response(upstream)

    async def forward(self, request: Request, url: str) -> httpx.Response:
        """Replay ``request`` against ``url``.

        Raises:
            UpstreamError: If the backend cannot be reached or times out.
        """
        body = await request.body()
        upstream_request = self.http_client.build_request(
            request.method,
            url,
            headers=forwarded_headers(request),
            content=body or None,
        )

        start_time = time.perf_counter()
        try:
            async with asyncio.timeout(self.proxy_timeout_ms / MILLISECONDS_PER_SECOND):
                upstream = await self.http_client.send(upstream_request)
        except (TimeoutError, httpx.TimeoutException) as exc:
            msg = f"Backend did not answer within {self.proxy_timeout_ms}ms"
            raise UpstreamError(
                msg, timed_out=True, context={"target": url}, cause=exc
            ) from exc
        except httpx.RequestError as exc:
            msg = f"Backend is unreachable: {type(exc).__name__}"
            raise UpstreamError(msg, context={"target": url}, cause=exc) from exc

        logger.info(
            "Request forwarded",
            target=url,
            status_code=upstream.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return upstream
