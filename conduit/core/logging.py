"""Structured logging built on Loguru.

Both the edge application and the request client log through Loguru. The
edge binds request-scoped fields (correlation ID, method, path) with
``logger.contextualize``; the client binds per-call fields (method, url,
status, failure kind, duration) with ``logger.bind``.

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: One JSON object per line (containers, log shippers)

Standard library logging (uvicorn, httpx) is captured by ``InterceptHandler``
so every line shares one format.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Any, Final, cast

from loguru import logger

from conduit.core.config import Settings, get_settings
from conduit.core.constants import REDACTED


class _LoggingState:
    """Tracks whether logging has been configured for this process."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()

DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
CORRELATION_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Library loggers re-routed through Loguru, with the level they are capped at.
# httpx and httpcore log every request at INFO; the client already does.
LIBRARY_LOGGERS: Final[dict[str, int | None]] = {
    "uvicorn": None,
    "uvicorn.error": None,
    "uvicorn.access": None,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

# Shown first, in this order, when present on a record
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "request_id",
    "method",
    "path",
    "url",
    "status_code",
    "failure",
    "duration_ms",
)


def _escape(value: object) -> str:
    # Loguru treats braces in a format result as placeholders
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str:
    if field == "correlation_id" and len(str(value)) > CORRELATION_ID_DISPLAY_LENGTH:
        value = str(value)[:CORRELATION_ID_DISPLAY_LENGTH]
    elif field == "duration_ms":
        value = f"{value}ms"
    elif field == "status_code":
        status_str = str(value)
        if status_str.startswith("2"):
            return f"<green>{value}</green>"
        if status_str.startswith("3"):
            return f"<yellow>{value}</yellow>"
        return f"<red>{value}</red>"
    return _escape(value)


def _format_extra_field(key: str, value: object) -> str:
    """Format a non-priority field, redacting sensitive keys.

    Args:
        key: The field name.
        value: The field value.

    Returns:
        str: ``key=value`` with the value truncated or redacted.
    """
    str_value = str(value)
    if key.lower() in get_settings().log_config.sensitive_fields:
        str_value = REDACTED
    elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(extra: dict[str, Any]) -> list[str]:
    context_parts = [
        f"<yellow>{_format_priority_field(field, extra[field])}</yellow>"
        for field in PRIORITY_FIELDS
        if extra.get(field) is not None
    ]
    context_parts.extend(
        f"<dim>{_format_extra_field(key, value)}</dim>"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None
    )
    return context_parts


def format_console_with_context(record: dict[str, Any]) -> str:
    """Format log record for console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Format string for Loguru, ending with a newline.
    """
    try:
        level = record["level"]
        parts = [
            f"<green>{record['time'].strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}</green>",
            f"<level>{getattr(level, 'name', level): <8}</level>",
            f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
        ]

        if context_parts := _format_context_fields(record.get("extra", {})):
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append(_escape(record.get("message", "")))

        line = " | ".join(parts)
        if record.get("exception"):
            line += "\n{exception}"
        return line + "\n"
    except (AttributeError, TypeError, ValueError, KeyError):
        return DEFAULT_LOG_FORMAT + "\n"


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    sensitive = get_settings().log_config.sensitive_fields
    for key, value in record.get("extra", {}).items():
        if key.startswith("_"):
            continue
        log_entry[key] = REDACTED if key.lower() in sensitive else value

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


LOG_FORMATTERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "json": serialize_for_json,
}


def setup_logging(settings: Settings) -> None:
    """Configure Loguru once per process.

    Later calls are ignored, so both the edge factory and the uvicorn runner
    may call it.
    """
    if _state.configured:
        return

    logger.remove()

    formatter_type = settings.log_config.log_formatter_type or "console"
    formatter = LOG_FORMATTERS.get(formatter_type)

    if formatter is None:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )
    else:

        def structured_sink(message: object) -> None:
            """Write each record through the structured formatter."""
            if hasattr(message, "record"):
                sys.stdout.write(formatter(message.record))
                sys.stdout.flush()

        logger.add(
            structured_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name, cap in LIBRARY_LOGGERS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers = [InterceptHandler()]
        library_logger.propagate = False
        if cap is not None:
            library_logger.setLevel(cap)

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=settings.log_config.log_level,
    )

    _state.configured = True
