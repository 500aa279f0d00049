"""Structured logging for the provenance tagger.

Every module obtains its logger via get_logger(__name__) and logs with
keyword event fields:

    logger.info("Skipping event", reason="self_event", resource_id=rid)

configure_logging() is called once at process startup (main.py). Without it,
structlog's default console configuration applies, which is what tests use.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    structlog output goes straight to stdout through PrintLoggerFactory. The
    stdlib root logger only carries third-party loggers such as azure-core.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ...).
        json_logs: Render JSON lines when True, human-readable console output otherwise.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer: structlog.typing.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a structlog logger bound to the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A bound logger accepting keyword event fields.
    """
    return structlog.get_logger(name)
