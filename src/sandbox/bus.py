"""Host message bus: every isolated context posts its outbound messages here."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core import get_logger

from .protocol import SandboxMessage

logger = get_logger(__name__)


@dataclass(frozen=True)
class Envelope:
    """A message tagged with the context that posted it."""

    source: Any
    message: SandboxMessage


Listener = Callable[[Envelope], None]


class MessageBus:
    """Fan-out of envelopes to subscribed listeners, in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add a listener; the returned callable removes it (idempotent)."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def post(self, envelope: Envelope) -> None:
        for listener in list(self._listeners):
            try:
                listener(envelope)
            except Exception as e:
                logger.error("bus_listener_failed", type=envelope.message.type, error=str(e))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


__all__ = ["Envelope", "MessageBus", "Listener"]
