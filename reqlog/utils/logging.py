"""Centralized structured logging configuration for reqlog.

Applications call ``configure_logging`` once at startup; modules use
``get_logger`` or ``structlog.get_logger(__name__)``.

In JSON mode the event name is written under ``msg`` so access lines
look like::

    {"ts": "2024-05-01T12:00:00Z", "req_id": "01HX...", "http_method": "GET",
     ..., "resp_status": 200, "msg": "request complete", "level": "info"}

The access log goes through the ``reqlog.access`` logger, whose level
can be set apart from the application's.
"""

import logging
import os
import sys

import structlog

ACCESS_LOGGER_NAME = "reqlog.access"


def build_processors(json_logs: bool) -> list[structlog.types.Processor]:
    """Return the processor chain, ending with the renderer."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.EventRenamer("msg"))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    *,
    json_logs: bool | None = None,
    log_level: str = "INFO",
    access_log_level: str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_logs: Force JSON output. Defaults to ``True`` when
            ``ENVIRONMENT`` is ``"production"``.
        log_level: Root log level (DEBUG, INFO, WARNING, ERROR).
        access_log_level: Level for ``reqlog.access``. Defaults to
            ``log_level``; ``"WARNING"`` or higher silences the
            per-request lines while keeping panics (logged at error).
    """
    if json_logs is None:
        json_logs = os.getenv("ENVIRONMENT", "development") == "production"

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=build_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # filter_by_level consults the stdlib levels
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    access_level = logging.getLevelName((access_log_level or log_level).upper())
    logging.getLogger(ACCESS_LOGGER_NAME).setLevel(
        access_level if isinstance(access_level, int) else level
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound logger for *name*.

    Args:
        name: Typically ``__name__`` of the calling module.
    """
    return structlog.get_logger(name)
