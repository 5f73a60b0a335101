"""Sandbox Execution Channel.

One correlated request/response cycle at a time against an isolated
context::

    IDLE -> AWAITING_RESPONSE -> RESOLVED | FAILED -> IDLE

The channel only moves structured messages across the boundary; it never
evaluates the code it carries.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable

from core import get_logger
from core.id import new_request_id
from monitoring import metrics_collector

from .bus import Envelope, MessageBus
from .context import IsolatedContext
from .errors import (
    ChannelBusyError,
    ContextNotReadyError,
    ExecutionError,
    ProtocolError,
    SandboxError,
    SandboxTimeoutError,
)
from .protocol import ERROR, RENDER_RESULT, SANDBOX_READY, render_request

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 5000


class ChannelState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class _PendingRequest:
    id: str
    context: IsolatedContext
    future: asyncio.Future
    started: float
    unsubscribe: Callable[[], None] | None = None
    timer: asyncio.TimerHandle | None = None


def _error_detail(payload: Any) -> str:
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return str(payload) if payload is not None else "Unknown sandbox error"


class ExecutionChannel:
    """
    Request/response channel over the host message bus.

    Examples:
        >>> channel = ExecutionChannel(bus, timeout_ms=5000)
        >>> result = await channel.execute(context, code)
    """

    def __init__(self, bus: MessageBus, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.bus = bus
        self.timeout_ms = timeout_ms
        self._state = ChannelState.IDLE
        self._pending: _PendingRequest | None = None

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is ChannelState.AWAITING_RESPONSE

    @property
    def pending_request_id(self) -> str | None:
        return self._pending.id if self._pending else None

    async def execute(self, context: IsolatedContext, code: str, framework: str = "react") -> Any:
        """
        Render ``code`` inside ``context``.

        Returns:
            The ``render-result`` payload

        Raises:
            ChannelBusyError: Another request is outstanding
            ContextNotReadyError: The context has not signalled readiness
            ExecutionError: The context reported an error
            ProtocolError: The context answered with an unknown message type
            SandboxTimeoutError: No answer within ``timeout_ms``
            asyncio.CancelledError: ``cancel()`` was called
        """
        if self.busy:
            raise ChannelBusyError(f"Request {self.pending_request_id} is still outstanding")
        if not context.ready:
            raise ContextNotReadyError(f"Context {context.handle} has not signalled readiness")

        loop = asyncio.get_running_loop()
        pending = _PendingRequest(
            id=new_request_id(),
            context=context,
            future=loop.create_future(),
            started=loop.time(),
        )
        self._pending = pending
        self._state = ChannelState.AWAITING_RESPONSE

        # Listener and timer are bound to this request; late callbacks for an
        # earlier request can never touch a newer one.
        pending.unsubscribe = self.bus.subscribe(partial(self._on_envelope, pending))
        pending.timer = loop.call_later(self.timeout_ms / 1000, self._on_deadline, pending)

        logger.debug("sandbox_request", id=pending.id, context=context.handle, bytes=len(code))
        status = "error"
        try:
            try:
                await context.post(render_request(code, framework, pending.id))
            except SandboxError as e:
                self._settle(pending, ChannelState.FAILED, error=e)
            result = await pending.future
            status = "success"
            return result
        except SandboxTimeoutError:
            status = "timeout"
            raise
        except asyncio.CancelledError:
            status = "cancelled"
            if self._pending is pending:
                self._release(pending)
                self._state = ChannelState.IDLE
            raise
        finally:
            metrics_collector.record_sandbox_request(status, loop.time() - pending.started)
            if self._pending is None and self._state is not ChannelState.AWAITING_RESPONSE:
                self._state = ChannelState.IDLE

    def cancel(self) -> bool:
        """
        Abandon the outstanding request without resolving it.

        The awaiting caller observes ``asyncio.CancelledError``. Returns False
        if nothing was outstanding.
        """
        pending = self._pending
        if pending is None:
            return False
        self._release(pending)
        self._state = ChannelState.IDLE
        pending.future.cancel()
        logger.info("sandbox_request_cancelled", id=pending.id)
        return True

    def _on_envelope(self, pending: _PendingRequest, envelope: Envelope) -> None:
        # Source identity is checked before anything else
        if envelope.source is not pending.context:
            return
        if pending.future.done():
            return

        message = envelope.message
        if message.type == SANDBOX_READY:
            return
        if message.id is not None and message.id != pending.id:
            logger.debug("sandbox_stale_response", expected=pending.id, got=message.id)
            return

        if message.type == RENDER_RESULT:
            self._settle(pending, ChannelState.RESOLVED, result=message.payload)
        elif message.type == ERROR:
            self._settle(pending, ChannelState.FAILED, error=ExecutionError(_error_detail(message.payload)))
        else:
            self._settle(pending, ChannelState.FAILED, error=ProtocolError(f"Unexpected message type: {message.type!r}"))

    def _on_deadline(self, pending: _PendingRequest) -> None:
        if pending.future.done():
            return
        logger.warning("sandbox_timeout", id=pending.id, timeout_ms=self.timeout_ms)
        self._settle(pending, ChannelState.FAILED, error=SandboxTimeoutError(self.timeout_ms, pending.id))

    def _settle(
        self,
        pending: _PendingRequest,
        outcome: ChannelState,
        result: Any = None,
        error: Exception | None = None,
    ) -> None:
        self._release(pending)
        if pending.future.done():
            return
        self._state = outcome
        if error is not None:
            logger.debug("sandbox_request_failed", id=pending.id, error_type=type(error).__name__)
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)

    def _release(self, pending: _PendingRequest) -> None:
        """Remove listener and timer; idempotent."""
        if pending.unsubscribe is not None:
            pending.unsubscribe()
            pending.unsubscribe = None
        if pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None
        if self._pending is pending:
            self._pending = None


__all__ = ["ExecutionChannel", "ChannelState", "DEFAULT_TIMEOUT_MS"]
