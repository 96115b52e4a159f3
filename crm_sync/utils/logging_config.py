"""structlog setup for the synchronization daemon.

Events are rendered as one JSON object per line (or colored console lines in
development) on stdout, and optionally mirrored to a rotating log file that an
operator can tail for cycle summaries and aborts.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog

from crm_sync.models.config import LoggingConfig

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _rotating_file_handler(path: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _processors(json_logs: bool, colors: bool) -> list[Any]:
    renderer: Any
    if json_logs:
        # Datetimes and other non-JSON values in event context fall back to str()
        renderer = structlog.processors.JSONRenderer(default=str)
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=colors, exception_formatter=structlog.dev.plain_traceback
        )

    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ],
        ),
        renderer,
    ]


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Route structlog events through stdlib logging.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines if True, console lines otherwise
        log_file: Optional path mirrored through a size-rotated file handler

    Example:
        >>> configure_logging(log_level="DEBUG", json_logs=False)
        >>> log = structlog.stdlib.get_logger()
        >>> log.info("worker_started", mappings=["contacts:Contact"])
    """
    level = _level(log_level)
    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout, force=True)

    if log_file:
        logging.root.addHandler(_rotating_file_handler(log_file, level))

    structlog.configure(
        processors=_processors(json_logs, colors=log_file is None),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_config(config: LoggingConfig, log_file: str | None = None) -> None:
    """Apply the `logging` section; an explicit log_file wins over the configured one."""
    configure_logging(
        log_level=config.log_level,
        json_logs=config.json_logs,
        log_file=log_file or config.log_file,
    )
