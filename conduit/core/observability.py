"""Tracing with OpenTelemetry.

Two span sources exist: the FastAPI instrumentation on the edge (one server
span per inbound request) and ``trace_operation`` in the request client (one
client span per outgoing call). Client spans carry the HTTP semantic
convention attributes below plus the failure kind of the envelope.

Exporters:
- **console**: spans are written through Loguru (development)
- **otlp**: spans go to an OTLP collector (Jaeger, Tempo, vendor agents)
- **none**: a tracer provider without exporter
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from conduit.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from fastapi import FastAPI

    from conduit.core.config import Settings

TRACER_NAME: Final[str] = "conduit"
DEFAULT_OTLP_ENDPOINT: Final[str] = "http://localhost:4317"

# Span attribute names
HTTP_METHOD_ATTR: Final[str] = "http.request.method"
URL_ATTR: Final[str] = "url.full"
STATUS_CODE_ATTR: Final[str] = "http.response.status_code"
FAILURE_ATTR: Final[str] = "conduit.failure"
CORRELATION_ID_ATTR: Final[str] = "correlation_id"

# Span attributes promoted to top-level log fields by LoguruSpanExporter
LOGGED_ATTRIBUTES: Final[dict[str, str]] = {
    HTTP_METHOD_ATTR: "method",
    URL_ATTR: "url",
    STATUS_CODE_ATTR: "status_code",
    FAILURE_ATTR: "failure",
    CORRELATION_ID_ATTR: "correlation_id",
}


class LoguruSpanExporter(SpanExporter):
    """Span exporter that writes finished spans through Loguru.

    Well-known HTTP attributes become log fields of their own so a client
    span reads like the request log line it belongs to; anything else is
    kept under ``attributes``.
    """

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Log each finished span at DEBUG level."""
        for span in spans:
            span_context = span.get_span_context()
            if not span_context:
                continue

            fields: dict[str, Any] = {}
            remaining: dict[str, Any] = {}
            for key, value in (span.attributes or {}).items():
                if key in LOGGED_ATTRIBUTES:
                    fields[LOGGED_ATTRIBUTES[key]] = value
                else:
                    remaining[key] = value

            if span.end_time and span.start_time:
                fields["duration_ms"] = (span.end_time - span.start_time) // 1_000_000

            logger.bind(
                trace_id=f"0x{span_context.trace_id:032x}",
                span_id=f"0x{span_context.span_id:016x}",
                span_name=span.name,
                span_kind=span.kind.name,
                span_status=span.status.status_code.name,
                attributes=remaining or None,
                **fields,
            ).debug("Span finished: {}", span.name)

        return SpanExportResult.SUCCESS


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    """Pick the exporter named by ``observability_config.exporter_type``.

    Returns:
        SpanExporter | None: The exporter, or None when export is disabled.
    """
    config = settings.observability_config

    if config.exporter_type == "console":
        return LoguruSpanExporter()

    if config.exporter_type == "otlp":
        endpoint = config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT
        logger.info("Exporting spans to OTLP collector at {}", endpoint)
        # Plain-text gRPC is only acceptable against a local collector
        return OTLPSpanExporter(
            endpoint=endpoint, insecure=settings.environment == "development"
        )

    logger.info("Span export disabled")
    return None


def setup_tracing(settings: Settings) -> None:
    """Install the global tracer provider when tracing is enabled."""
    config = settings.observability_config
    if not config.enable_tracing:
        logger.debug("Tracing disabled by configuration")
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(config.trace_sample_rate),
    )
    if exporter := get_span_exporter(settings):
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    logger.info(
        "Tracing configured",
        exporter_type=config.exporter_type,
        sample_rate=config.trace_sample_rate,
    )


def instrument_app(app: FastAPI, settings: Settings) -> None:
    """Add server spans to the edge application.

    Health checks are excluded so load balancer probes do not flood the
    exporter.
    """
    if not settings.observability_config.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="/health",
        server_request_hook=add_correlation_id_to_span,
    )
    logger.info("Edge instrumented for tracing")


def add_correlation_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
    """Server request hook copying the bound correlation ID onto the span."""
    _ = scope
    if span.is_recording() and (correlation_id := RequestContext.get_correlation_id()):
        span.set_attribute(CORRELATION_ID_ATTR, correlation_id)


def record_outcome(
    span: trace.Span, *, status_code: int | None, failure: str | None
) -> None:
    """Attach the classified result of a client request to its span."""
    if status_code is not None:
        span.set_attribute(STATUS_CODE_ATTR, status_code)
    if failure is not None:
        span.set_attribute(FAILURE_ATTR, failure)
        span.set_status(trace.StatusCode.ERROR, failure)


@contextmanager
def trace_operation(
    name: str, **attributes: str | int | float | bool
) -> Iterator[trace.Span]:
    """Run a block inside a new span.

    Without a configured tracer provider the span is a no-op.

    Args:
        name: Operation name for the span.
        **attributes: Initial attributes for the span.

    Yields:
        trace.Span: The active span.
    """
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        if correlation_id := RequestContext.get_correlation_id():
            span.set_attribute(CORRELATION_ID_ATTR, correlation_id)
        yield span
