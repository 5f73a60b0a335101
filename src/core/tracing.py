"""
Operation Tracing
Spans for renders, generations and snapshot writes. A finished span is
logged through structlog; slow and failed ones are also kept in a short
in-memory list for the health endpoint.
"""

import asyncio
import contextvars
import time
from collections import deque
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Generator

import structlog

from .id import generate_raw

logger = structlog.get_logger(__name__)

_trace_id: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
_span_id: contextvars.ContextVar[str] = contextvars.ContextVar("span_id", default="")

SLOW_SPAN_SECONDS = 1.0
NOTABLE_SPANS_KEPT = 20


@dataclass
class Span:
    trace_id: str
    span_id: str
    parent_id: str
    operation: str
    started: float
    tags: dict[str, str] = field(default_factory=dict)
    duration: float = 0.0
    status: str = "ok"  # ok | error | cancelled
    error: str | None = None

    @property
    def duration_ms(self) -> float:
        return round(self.duration * 1000, 3)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "operation": self.operation,
            "status": self.status,
            "duration_ms": self.duration_ms,
            **self.tags,
        }
        if self.parent_id:
            data["parent_id"] = self.parent_id
        if self.error:
            data["error"] = self.error
        return data


class Tracer:
    """Opens spans under the current trace and reports them on close."""

    def __init__(self, service: str, slow_after: float = SLOW_SPAN_SECONDS) -> None:
        self.service = service
        self.slow_after = slow_after
        self.notable: deque[Span] = deque(maxlen=NOTABLE_SPANS_KEPT)

    def begin(self, operation: str, tags: dict[str, Any]) -> tuple[Span, tuple[contextvars.Token, contextvars.Token]]:
        trace_id = _trace_id.get() or generate_raw()
        span = Span(
            trace_id=trace_id,
            span_id=generate_raw(),
            parent_id=_span_id.get(),
            operation=operation,
            started=time.monotonic(),
            tags={k: str(v) for k, v in tags.items()},
        )
        return span, (_trace_id.set(trace_id), _span_id.set(span.span_id))

    def end(self, span: Span, tokens: tuple[contextvars.Token, contextvars.Token], error: BaseException | None) -> None:
        span.duration = time.monotonic() - span.started
        if isinstance(error, asyncio.CancelledError):
            span.status = "cancelled"
        elif error is not None:
            span.status, span.error = "error", f"{type(error).__name__}: {error}"

        trace_token, span_token = tokens
        _span_id.reset(span_token)
        _trace_id.reset(trace_token)

        fields = {"service": self.service, **span.to_dict()}
        if span.status == "error":
            logger.warning("span_failed", **fields)
        elif span.duration > self.slow_after:
            logger.warning("span_slow", **fields)
        else:
            logger.debug("span_completed", **fields)
            return
        self.notable.append(span)

    def recent_notable(self) -> list[dict[str, Any]]:
        """Latest slow or failed spans, newest first."""
        return [s.to_dict() for s in reversed(self.notable)]


_tracer: Tracer | None = None


def init_tracer(service: str) -> Tracer:
    """Install the process tracer; spans are no-ops until this is called."""
    global _tracer
    _tracer = Tracer(service)
    return _tracer


def get_tracer() -> Tracer | None:
    return _tracer


def current_ids() -> tuple[str, str]:
    """``(trace_id, span_id)`` of the active span; empty strings outside one."""
    return _trace_id.get(), _span_id.get()


@contextmanager
def trace_operation(operation: str, **tags: Any) -> Generator[Span | None, None, None]:
    tracer = _tracer
    if tracer is None:
        yield None
        return

    span, tokens = tracer.begin(operation, tags)
    error: BaseException | None = None
    try:
        yield span
    except BaseException as e:
        error = e
        raise
    finally:
        tracer.end(span, tokens, error)


@asynccontextmanager
async def trace_operation_async(operation: str, **tags: Any) -> AsyncGenerator[Span | None, None]:
    tracer = _tracer
    if tracer is None:
        yield None
        return

    span, tokens = tracer.begin(operation, tags)
    error: BaseException | None = None
    try:
        yield span
    except BaseException as e:
        error = e
        raise
    finally:
        tracer.end(span, tokens, error)


__all__ = [
    "Span",
    "Tracer",
    "init_tracer",
    "get_tracer",
    "current_ids",
    "trace_operation",
    "trace_operation_async",
]
