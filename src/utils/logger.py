"""Logging configuration using structlog and colorlog.

Everything is written to stderr: the MCP stdio transport owns stdout and any
stray byte there corrupts the JSON-RPC stream.
"""

import logging
import sys
from typing import Iterable, Optional

import colorlog
import structlog
from structlog.typing import FilteringBoundLogger

from .config import get_settings

# Third-party loggers that are chatty at INFO and not useful to tool callers
NOISY_LOGGERS = ("fastmcp", "mcp", "docket", "httpx")


def setup_logging(log_level: Optional[str] = None, quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """
    Configure structured logging with color output on stderr.

    Args:
        log_level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        quiet: Standard-library logger names to raise to WARNING
    """
    settings = get_settings()
    level = log_level or settings.log_level
    log_level_int = getattr(logging, level.upper(), logging.INFO)

    formatter = colorlog.ColoredFormatter(
        "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s %(message)s",
        reset=True,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        },
        style='%'
    )

    handler = colorlog.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)

    for name in quiet:
        logging.getLogger(name).setLevel(max(log_level_int, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Optional logger name (usually __name__)

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    if name:
        return structlog.get_logger(name).bind(logger=name)
    return structlog.get_logger()


# Initialize logging on module import
setup_logging()
