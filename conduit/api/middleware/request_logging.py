"""HTTP request/response logging for the edge.

Every inbound request, proxied or served locally, is logged on start and on
completion with its duration, status and sizes. Requests slower than
``slow_request_threshold_ms`` are logged again as warnings.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from conduit.api.constants import REQUEST_ID_HEADER
from conduit.core.config import LogConfig

MAX_USER_AGENT_LENGTH = 200


def client_ip(request: Request, *, trust_forwarded: bool) -> str:
    """Extract the client IP, optionally honouring proxy headers.

    Args:
        request: The incoming request.
        trust_forwarded: Whether X-Forwarded-For / X-Real-IP may be used.

    Returns:
        str: The client IP address or "unknown".
    """
    if trust_forwarded:
        if forwarded_for := request.headers.get("x-forwarded-for"):
            return forwarded_for.split(",")[0].strip()
        if real_ip := request.headers.get("x-real-ip"):
            return real_ip.strip()

    if request.client:
        return request.client.host
    return "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
        trust_forwarded: Whether client IPs may come from proxy headers.
    """

    def __init__(
        self, app: ASGIApp, *, log_config: LogConfig, trust_forwarded: bool = False
    ) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)
        self.trust_forwarded = trust_forwarded

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Raises:
            Exception: Any exception raised downstream is re-raised after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        user_agent = request.headers.get("user-agent", "")[:MAX_USER_AGENT_LENGTH]

        with logger.contextualize(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_host=client_ip(request, trust_forwarded=self.trust_forwarded),
            user_agent=user_agent or "unknown",
        ):
            logger.info(
                "Request started",
                request_size=int(request.headers.get("content-length", 0)),
            )
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "Request failed",
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                raise

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
                response_size=int(response.headers.get("content-length", 0)),
            )
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=duration_ms,
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            return response
