"""
Structured logging for vboxdriver using structlog.

Modules obtain loggers with get_logger(). Applications that have no logging
setup of their own can call attach_driver_handlers() to see the driver's
records; it only touches the ``vboxdriver`` logger hierarchy.
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

LOGGER_NAME = "vboxdriver"

_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _ensure_stdlib_routing() -> None:
    # Leave an application's own structlog setup alone.
    if structlog.is_configured():
        return
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def attach_driver_handlers(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Send ``vboxdriver.*`` records to stderr and/or a JSON log file.

    Handlers hang off the ``vboxdriver`` logger, which stops propagating, so
    VBoxManage command traces never land in the root logger. Calling this
    again replaces the handlers it installed before.

    Args:
        level: Log level for the driver (DEBUG shows every VBoxManage call)
        json_output: If True, render console output as JSON
        log_file: Optional file path for log output (always JSON)
        console_output: If True, also output to stderr
    """
    _ensure_stdlib_routing()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console_output:
        renderer = (
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(colors=False)
        )
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=_PRE_CHAIN)
        )
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=_PRE_CHAIN,
            )
        )
        logger.addHandler(file_handler)

    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = LOGGER_NAME) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def log_operation(logger: structlog.stdlib.BoundLogger, operation: str, **kwargs):
    """
    Log the start, completion and failure of an operation.

    Usage:
        with log_operation(log, "snapshot.restore", vm_name="base"):
            driver.restore_snapshot(...)
    """
    log = logger.bind(operation=operation, **kwargs)
    start_time = datetime.now()
    log.debug(f"{operation}.started")

    try:
        yield log
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.debug(f"{operation}.completed", duration_ms=round(duration_ms, 2))
    except Exception as e:
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round(duration_ms, 2),
        )
        raise
