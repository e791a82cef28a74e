"""Run the Conduit edge with uvicorn.

``python main.py`` serves the edge on ``API_HOST``/``API_PORT`` (or ``PORT``
when a container platform provides one). Debug mode serves the import string
so uvicorn can reload on code changes.
"""

import os
from typing import Any

import uvicorn
from loguru import logger

from conduit.core.config import Settings, get_settings
from conduit.core.logging import setup_logging

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def uvicorn_log_config(level: str) -> dict[str, Any]:
    """Route uvicorn's own loggers through Loguru."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "loguru": {"class": "conduit.core.logging.InterceptHandler"},
        },
        "loggers": {
            name: {"handlers": ["loguru"], "level": level, "propagate": False}
            for name in UVICORN_LOGGERS
        },
    }


def resolve_port(settings: Settings) -> int:
    """Port to bind; a platform-provided PORT wins over configuration."""
    return int(os.environ.get("PORT", settings.api_port))


def main() -> None:
    """Run the edge application."""
    settings = get_settings()
    setup_logging(settings)

    port = resolve_port(settings)
    mode = "development mode with auto-reload" if settings.debug else "production mode"
    logger.info(
        "Starting edge on http://{}:{} ({})", settings.api_host, port, mode
    )

    uvicorn.run(
        "conduit.api.main:app",
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=uvicorn_log_config(settings.log_config.log_level),
    )


if __name__ == "__main__":
    main()
