"""Global exception handlers for the edge application.

Every error the edge produces itself is rendered as an ``ErrorResponse``
body built from the settings the application was created with. Unhandled
exceptions are answered by Starlette's outermost error middleware, which
runs outside the security headers middleware, so the generic handler
attaches the security headers itself.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from conduit.api.middleware.security_headers import apply_security_headers
from conduit.api.schemas.errors import ErrorResponse, ServiceInfo
from conduit.api.utils.responses import ORJSONResponse
from conduit.core.config import Settings
from conduit.core.context import RequestContext, generate_request_id
from conduit.core.exceptions import (
    ConduitError,
    ErrorCode,
    Severity,
    UpstreamError,
)


def get_service_info(settings: Settings) -> ServiceInfo:
    """Create ServiceInfo from application settings."""
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


def app_settings(request: Request) -> Settings:
    """Settings the serving application was created with."""
    settings: Settings = request.app.state.settings
    return settings


def build_error_response(
    settings: Settings,
    status_code: int,
    error_code: str,
    message: str,
    *,
    severity: Severity,
    details: dict[str, object] | None = None,
) -> ORJSONResponse:
    """Render an ErrorResponse body.

    Args:
        settings: Settings of the application answering the request.
        status_code: HTTP status of the response.
        error_code: Machine-readable error code.
        message: Human-readable message.
        severity: Error severity.
        details: Additional details.

    Returns:
        ORJSONResponse: The rendered error response.
    """
    error_response = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        correlation_id=RequestContext.get_correlation_id(),
        request_id=generate_request_id(),
        severity=severity.value,
        service_info=get_service_info(settings),
    )
    return ORJSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
    )


def status_for_error(exc: ConduitError) -> int:
    """Map a ConduitError to the HTTP status the edge answers with."""
    if isinstance(exc, UpstreamError):
        return (
            status.HTTP_504_GATEWAY_TIMEOUT
            if exc.timed_out
            else status.HTTP_502_BAD_GATEWAY
        )
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def conduit_error_response(settings: Settings, exc: ConduitError) -> ORJSONResponse:
    """Render a ConduitError as an error response."""
    return build_error_response(
        settings,
        status_for_error(exc),
        exc.error_code,
        exc.message,
        severity=exc.severity,
        details=exc.context or None,
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException (e.g. unknown local paths).

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error_code = ErrorCode.INTERNAL_ERROR.value
    severity = Severity.MEDIUM
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        error_code = ErrorCode.NOT_FOUND.value
        severity = Severity.LOW
    elif exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
        error_code = ErrorCode.VALIDATION_ERROR.value
        severity = Severity.LOW

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        method=request.method,
        path=request.url.path,
        detail=exc.detail,
    )

    response = build_error_response(
        app_settings(request),
        exc.status_code,
        error_code,
        str(exc.detail),
        severity=severity,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unhandled exceptions with a safe 500 response.

    In production the exception type and message are hidden from clients.
    """
    settings = app_settings(request)

    logger.opt(exception=exc).error(
        "Unhandled exception: {exception_type}",
        exception_type=type(exc).__name__,
        request_method=request.method,
        request_path=request.url.path,
    )

    if settings.environment == "production":
        message = "An internal server error occurred"
        details = None
    else:
        message = f"Internal server error: {type(exc).__name__}"
        details = {"error": str(exc), "type": type(exc).__name__}

    response = build_error_response(
        settings,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR.value,
        message,
        severity=Severity.CRITICAL,
        details=details,
    )
    apply_security_headers(
        response.headers, getattr(request.app.state, "security_headers", None)
    )
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the edge application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Exception handlers registered")
