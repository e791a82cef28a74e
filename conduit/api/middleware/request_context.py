"""Correlation ID handling for inbound edge requests.

The correlation ID is taken from the ``X-Correlation-ID`` request header or
generated, bound to the current context (so forwarded requests and client
calls made while serving the request carry it), attached to every log line
through ``logger.contextualize`` and echoed on the response.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from conduit.core.constants import CORRELATION_ID_HEADER
from conduit.core.context import correlation_scope


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request context and correlation IDs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request inside a correlation scope.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        incoming = request.headers.get(CORRELATION_ID_HEADER)
        with (
            correlation_scope(incoming) as correlation_id,
            logger.contextualize(correlation_id=correlation_id),
        ):
            response = await call_next(request)
            response.headers.setdefault(CORRELATION_ID_HEADER, correlation_id)
            return response
