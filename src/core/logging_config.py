"""
Structured Logging Configuration
structlog for the service and the sandbox worker. Events emitted inside a
traced operation carry its ``trace_id``/``span_id``.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from pythonjsonlogger import jsonlogger
from structlog.typing import EventDict, WrappedLogger

from .tracing import current_ids

# Chatty libraries kept at WARNING unless the service itself runs at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "asyncio")


def add_trace_ids(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    trace_id, span_id = current_ids()
    if trace_id:
        event_dict.setdefault("trace_id", trace_id)
        event_dict.setdefault("span_id", span_id)
    return event_dict


def _handler(stream: TextIO, json_logs: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    if json_logs:
        handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s | %(message)s"))
    return handler


def configure_logging(level: str = "INFO", json_logs: bool = False, stream: TextIO | None = None) -> None:
    """
    Configure structured logging for the process.

    Args:
        level: Log level name
        json_logs: Render events as JSON lines
        stream: Output stream; stdout unless given. The sandbox worker passes
            stderr since its stdout is the protocol channel.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, handlers=[_handler(stream or sys.stdout, json_logs)], force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(log_level if log_level <= logging.DEBUG else logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_ids,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """
    Bind fields to every event logged in scope.

    Examples:
        >>> with LogContext(request_id="req_01H..."):
        ...     logger.info("render_rejected")
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = {k: v for k, v in fields.items() if v is not None}

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.fields)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.fields)
