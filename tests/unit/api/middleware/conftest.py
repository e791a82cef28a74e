"""Fixtures for edge middleware tests.

Headers on the request and response mocks are plain dicts, which is enough
for middleware that only reads, sets or setdefaults individual keys.
"""

from typing import cast

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


@pytest.fixture
def mock_starlette_request(mocker: MockerFixture) -> MockType:
    """Inbound request for a local edge path without headers."""
    request = mocker.Mock(spec=Request)
    request.headers = {}
    request.url = mocker.Mock()
    request.url.path = "/info"
    return cast("MockType", request)


@pytest.fixture
def mock_starlette_response(mocker: MockerFixture) -> MockType:
    """Response returned by the next handler, with no headers set yet."""
    response = mocker.Mock(spec=Response)
    response.status_code = 200
    response.headers = {}
    return cast("MockType", response)


@pytest.fixture
def mock_starlette_call_next(
    mocker: MockerFixture, mock_starlette_response: MockType
) -> MockType:
    """Next handler in the chain, resolving to ``mock_starlette_response``."""
    call_next = mocker.AsyncMock(spec=RequestResponseEndpoint)
    call_next.return_value = mock_starlette_response
    return cast("MockType", call_next)
