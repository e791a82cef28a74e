"""Security headers middleware for adding common security headers to responses."""

from collections.abc import Awaitable, Callable, MutableMapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from conduit.core.constants import DEFAULT_HSTS_MAX_AGE

type HeaderSet = dict[str, str]

BASE_SECURITY_HEADERS: HeaderSet = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def build_hsts_header(
    max_age: int = DEFAULT_HSTS_MAX_AGE,
    *,
    include_subdomains: bool = True,
    preload: bool = False,
) -> str:
    """Build the Strict-Transport-Security header value.

    Returns:
        str: The HSTS header value string.
    """
    parts = [f"max-age={max_age}"]
    if include_subdomains:
        parts.append("includeSubDomains")
    if preload:
        parts.append("preload")
    return "; ".join(parts)


def build_security_headers(
    *,
    hsts_enabled: bool = True,
    hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
    hsts_include_subdomains: bool = True,
    hsts_preload: bool = False,
) -> HeaderSet:
    """Build the fixed, ordered header set applied to every response."""
    headers = dict(BASE_SECURITY_HEADERS)
    if hsts_enabled:
        headers["Strict-Transport-Security"] = build_hsts_header(
            hsts_max_age,
            include_subdomains=hsts_include_subdomains,
            preload=hsts_preload,
        )
    return headers


def apply_security_headers(
    headers: MutableMapping[str, str], header_set: HeaderSet | None = None
) -> None:
    """Add the security headers without overwriting ones already present.

    Args:
        headers: Response headers to annotate in place.
        header_set: Headers to add. Defaults to the base set plus HSTS.
    """
    if header_set is None:
        header_set = build_security_headers()
    for name, value in header_set.items():
        headers.setdefault(name, value)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers set by the handler that produced the response (including
    headers relayed from a proxied backend) are kept as they are.

    Args:
        app: The ASGI application to wrap.
        hsts_enabled: Whether to include HSTS header (defaults to True).
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        hsts_include_subdomains: Whether to include subdomains in HSTS.
        hsts_preload: Whether to include preload directive.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
        hsts_preload: bool = False,
    ) -> None:
        super().__init__(app)
        self.header_set = build_security_headers(
            hsts_enabled=hsts_enabled,
            hsts_max_age=hsts_max_age,
            hsts_include_subdomains=hsts_include_subdomains,
            hsts_preload=hsts_preload,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)
        apply_security_headers(response.headers, self.header_set)
        return response
