"""Structured logging configuration."""
import logging
import sys

import structlog

from .config import LOG_JSON, LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL, json_output: bool = LOG_JSON) -> None:
    """Configure structlog on top of the standard library logger."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
