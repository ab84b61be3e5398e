"""structlog configuration."""

from __future__ import annotations

import logging
from typing import Any

import structlog

from bus_provisioning.config.models import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Install structlog processors and route output through stdlib logging."""
    config = config or LoggingConfig()
    level = getattr(logging, config.level.upper())
    logging.basicConfig(format="%(message)s", level=level)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
