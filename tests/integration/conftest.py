"""Shared fixtures for integration tests.

The edge application is served in-process through ``httpx.ASGITransport``
and forwards to a fake backend implemented with ``httpx.MockTransport``.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from fastapi import FastAPI

from conduit.api.main import create_app
from conduit.core.config import ClientConfig, EdgeConfig, Settings

BACKEND_ORIGIN = "http://backend:8000"

type EdgeFactory = Callable[..., FastAPI]


@pytest.fixture
def backend_requests() -> list[httpx.Request]:
    """Requests the fake backend received, in arrival order."""
    return []


@pytest.fixture
def backend_transport(backend_requests: list[httpx.Request]) -> httpx.MockTransport:
    """Fake backend serving a handful of /api endpoints."""

    async def handler(request: httpx.Request) -> httpx.Response:
        backend_requests.append(request)
        path = request.url.path

        if path == "/api/users":
            return httpx.Response(
                200,
                json={
                    "users": [{"id": 1, "name": "Ada"}],
                    "query": dict(request.url.params),
                    "message": "ok",
                },
            )
        if path == "/api/framed":
            return httpx.Response(
                200, headers={"X-Frame-Options": "SAMEORIGIN"}, json={}
            )
        if path == "/api/missing":
            return httpx.Response(404, json={"message": "User not found"})
        if path == "/api/upload":
            return httpx.Response(
                200,
                json={
                    "content_type": request.headers["content-type"].split(";")[0],
                    "has_file": b'name="file"' in request.content,
                },
            )
        if path == "/api/slow":
            await asyncio.sleep(1)
            return httpx.Response(200, json={})
        if path == "/api/down":
            raise httpx.ConnectError("Connection refused", request=request)
        return httpx.Response(404, json={"detail": "Not Found"})

    return httpx.MockTransport(handler)


@pytest.fixture
def edge_settings() -> Settings:
    """Edge settings forwarding /api/ to the fake backend."""
    return Settings(
        client_config=ClientConfig(base_url=BACKEND_ORIGIN),
        edge_config=EdgeConfig(proxy_timeout_ms=100),
    )


@pytest.fixture
async def make_edge(
    edge_settings: Settings, backend_transport: httpx.MockTransport
) -> AsyncGenerator[EdgeFactory]:
    """Factory creating edge applications wired to the fake backend."""
    apps: list[FastAPI] = []

    def _create(settings: Settings | None = None) -> FastAPI:
        application = create_app(
            settings or edge_settings, proxy_transport=backend_transport
        )
        apps.append(application)
        return application

    yield _create

    for application in apps:
        await application.state.proxy_client.aclose()


@pytest.fixture
def edge_app(make_edge: EdgeFactory) -> FastAPI:
    """Edge application with default test settings."""
    return make_edge()


@pytest.fixture
async def edge_client(edge_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client talking to the edge application in-process.

    Unhandled application errors are returned as responses rather than
    re-raised, as a real server would do.
    """
    transport = httpx.ASGITransport(app=edge_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://edge.test"
    ) as client:
        yield client
