"""Edge application factory.

The edge sits in front of the single-page application. It:
- forwards paths matching a rewrite rule (``/api/*`` by default) to the
  backend origin
- serves everything else locally (health, info, optional SPA build directory)
- adds the security headers to every response, errors included

Middleware are executed in reverse order of registration, so the security
headers middleware is registered last and wraps everything else.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from loguru import logger

from conduit.api.middleware.error_handler import register_exception_handlers
from conduit.api.middleware.path_rewrite import PathRewriteMiddleware
from conduit.api.middleware.request_context import RequestContextMiddleware
from conduit.api.middleware.request_logging import RequestLoggingMiddleware
from conduit.api.middleware.security_headers import (
    SecurityHeadersMiddleware,
    build_security_headers,
)
from conduit.api.routing import PathRewriteRouter
from conduit.api.utils.responses import ORJSONResponse
from conduit.core.config import Settings, get_settings
from conduit.core.constants import MILLISECONDS_PER_SECOND
from conduit.core.logging import setup_logging
from conduit.core.observability import instrument_app, setup_tracing


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log startup and release the forwarding client on shutdown.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    await app_instance.state.proxy_client.aclose()
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    *,
    proxy_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the edge application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        proxy_transport: Optional httpx transport for forwarded requests.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Raises:
        ConfigurationError: If a rewrite rule is malformed.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    edge_config = settings.edge_config
    router = PathRewriteRouter.from_config(edge_config)
    proxy_client = httpx.AsyncClient(
        transport=proxy_transport,
        timeout=httpx.Timeout(edge_config.proxy_timeout_ms / MILLISECONDS_PER_SECOND),
        limits=httpx.Limits(max_connections=None, max_keepalive_connections=20),
    )
    security_headers = build_security_headers(
        hsts_enabled=edge_config.hsts_enabled,
        hsts_max_age=edge_config.hsts_max_age,
        hsts_include_subdomains=edge_config.hsts_include_subdomains,
        hsts_preload=edge_config.hsts_preload,
    )

    docs_enabled = settings.environment != "production"
    # FastAPI debug stays off so unhandled errors reach generic_exception_handler
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.router = router
    application.state.proxy_client = proxy_client
    application.state.security_headers = security_headers

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application)

    # 4. Path rewrite (forwards matching requests, innermost)
    application.add_middleware(
        PathRewriteMiddleware,
        router=router,
        http_client=proxy_client,
        proxy_timeout_ms=edge_config.proxy_timeout_ms,
    )

    # 3. Request logging middleware (logs requests/responses)
    application.add_middleware(
        RequestLoggingMiddleware,
        log_config=settings.log_config,
        trust_forwarded=settings.environment == "production",
    )

    # 2. Request context middleware (creates correlation ID)
    application.add_middleware(RequestContextMiddleware)

    # 1. Security headers middleware (adds security headers to all responses)
    application.add_middleware(
        SecurityHeadersMiddleware,
        hsts_enabled=edge_config.hsts_enabled,
        hsts_max_age=edge_config.hsts_max_age,
        hsts_include_subdomains=edge_config.hsts_include_subdomains,
        hsts_preload=edge_config.hsts_preload,
    )

    @application.get("/health")
    async def health() -> dict[str, str]:
        """Liveness endpoint for container orchestration and load balancers."""
        return {"status": "healthy"}

    @application.get("/info")
    async def info(request: Request) -> dict[str, Any]:
        """Application information including the active rewrite rules.

        Returns:
            dict[str, Any]: Name, version, environment and rewrite rules.
        """
        app_settings: Settings = request.app.state.settings
        rules = request.app.state.router.rules
        return {
            "app_name": app_settings.app_name,
            "version": app_settings.app_version,
            "environment": app_settings.environment,
            "rewrite_rules": [
                {
                    "match_prefix": rule.match_prefix,
                    "destination_origin": rule.destination_origin,
                }
                for rule in rules
            ],
        }

    # Mounted last so explicit routes take precedence
    if edge_config.static_dir:
        application.mount(
            "/",
            StaticFiles(directory=edge_config.static_dir, html=True),
            name="spa",
        )
        logger.info("Serving static files from {}", edge_config.static_dir)

    instrument_app(application, settings)

    return application


app = create_app()
