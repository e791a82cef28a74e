"""Shared fixtures for unit tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import cast

import httpx
import pytest
from pytest_mock import MockerFixture, MockType

from conduit.client.api_client import ApiClient
from conduit.core.config import ClientConfig

type Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]
type ClientFactory = Callable[..., ApiClient]


@pytest.fixture
def client_config() -> ClientConfig:
    """Client configuration pointing at a fake backend with a short timeout."""
    return ClientConfig(base_url="http://backend.test", timeout_ms=200)


@pytest.fixture
def captured_requests() -> list[httpx.Request]:
    """Requests seen by the mock transport, in arrival order."""
    return []


@pytest.fixture
async def make_client(
    client_config: ClientConfig,
    captured_requests: list[httpx.Request],
) -> AsyncGenerator[ClientFactory]:
    """Factory building ApiClients backed by an httpx MockTransport.

    The handler may be sync or async; MockTransport awaits coroutines.

    Usage:
        api = make_client(lambda request: httpx.Response(200, json={"ok": True}))
    """
    clients: list[ApiClient] = []

    def _create(handler: Handler, config: ClientConfig | None = None) -> ApiClient:
        def recording_handler(
            request: httpx.Request,
        ) -> httpx.Response | Awaitable[httpx.Response]:
            captured_requests.append(request)
            return handler(request)

        api = ApiClient(
            config or client_config,
            transport=httpx.MockTransport(recording_handler),
        )
        clients.append(api)
        return api

    yield _create

    for api in clients:
        await api.aclose()


@pytest.fixture
def mock_app(mocker: MockerFixture) -> MockType:
    """Provide a mock ASGI app for middleware construction."""
    return cast("MockType", mocker.Mock())
