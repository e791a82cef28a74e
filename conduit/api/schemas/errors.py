"""Error body returned by the edge for every failure it produces itself.

Proxied backend errors are relayed untouched; this schema covers edge-side
failures (backend unreachable, backend timeout, unknown local path,
unhandled exceptions) so the single-page application always receives the
same JSON shape from the edge.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class ServiceInfo(BaseModel):
    """Identifies the edge instance that produced an error."""

    name: str = Field(..., description="Edge application name", examples=["Conduit"])
    version: str = Field(..., description="Edge version", examples=["0.1.0"])
    environment: str = Field(
        ...,
        description="Deployment environment of the edge",
        examples=["development", "production"],
    )


class ErrorResponse(BaseModel):
    """JSON body of an edge-generated error response."""

    error_code: str = Field(
        ...,
        description="Machine-readable failure identifier",
        examples=["UPSTREAM_UNAVAILABLE", "UPSTREAM_TIMEOUT", "NOT_FOUND"],
    )
    message: str = Field(
        ...,
        description="Explanation suitable for showing to a developer",
        examples=["Backend is unreachable: ConnectError"],
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Failure context such as the forwarding target",
        examples=[{"target": "http://backend:8000/api/users"}],
    )
    correlation_id: str | None = Field(
        default=None,
        description="X-Correlation-ID of the request that failed",
        examples=["3f0c9a4e-8f1b-4b53-9d55-0a7c2b1e6d42"],
    )
    request_id: str | None = Field(
        default=None,
        description="Identifier of this particular error response",
        examples=["req-7d1e2a90-5b64-4c1f-a3de-2f86b0c9e415"],
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the edge produced the error (UTC)",
    )
    severity: str | None = Field(
        default=None,
        description="Severity of the failure",
        examples=["LOW", "HIGH", "CRITICAL"],
    )
    service_info: ServiceInfo | None = Field(
        default=None,
        description="Edge instance that answered",
    )
