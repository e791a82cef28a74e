"""Correlation context shared by the edge middleware and the request client.

The edge stores the inbound correlation ID here; the request client reads it
and propagates it on outgoing calls, so a browser request, the edge log lines
and the backend call it triggers can be tied together.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Context variable for storing correlation ID across async boundaries
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class RequestContext:
    """Async-safe storage for the correlation ID of the current task."""

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context."""
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation ID from the current context, if any."""
        return _correlation_id_var.get()

    @staticmethod
    def clear() -> None:
        """Forget the correlation ID of the current context."""
        _correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    The previous value is restored on exit, which makes nested scopes and
    concurrently running tasks safe.

    Args:
        correlation_id: ID to bind. A new one is generated when omitted.

    Yields:
        str: The bound correlation ID.
    """
    value = correlation_id or generate_correlation_id()
    token = _correlation_id_var.set(value)
    try:
        yield value
    finally:
        _correlation_id_var.reset(token)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID (UUID4 string)."""
    return str(uuid.uuid4())


def generate_request_id() -> str:
    """Generate a unique request ID.

    Returns:
        str: A prefixed UUID4 string in format 'req-<uuid4>'.
    """
    return f"req-{uuid.uuid4()}"
