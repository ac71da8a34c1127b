"""Structlog setup: JSON lines in production, coloured console in development."""

from __future__ import annotations

import logging
import sys

import structlog

# Queries are user free text; keep log lines bounded.
_MAX_QUERY_CHARS = 80


def truncate_query(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Cap the ``query`` field of a log record at :data:`_MAX_QUERY_CHARS`."""
    query = event_dict.get("query")
    if isinstance(query, str) and len(query) > _MAX_QUERY_CHARS:
        event_dict["query"] = query[:_MAX_QUERY_CHARS] + "..."
    return event_dict


def configure_logging(environment: str, log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one renderer.

    Production writes JSON lines; development writes a console view,
    coloured only on a terminal. Records carry whatever the route engine
    bound for the current request (the serving table's ``generation``)
    and have their ``query`` field truncated.

    Args:
        environment: One of ``"production"`` or ``"development"`` (default).
        log_level:   Standard Python log-level name, e.g. ``"INFO"``.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        truncate_query,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if environment == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # The observer thread logs every inotify event at debug level.
    logging.getLogger("watchdog").setLevel(max(level, logging.INFO))
    if environment == "production":
        for noisy in ("httpx", "httpcore", "uvicorn.access"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
