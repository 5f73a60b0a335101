"""Test doubles shared across the suite."""

from collections.abc import Callable
from typing import Any

from core import GenerationRequest
from sandbox import IsolatedContext, MessageBus, SandboxMessage
from sandbox import protocol

Responder = Callable[["FakeContext", SandboxMessage], None]


def render_ok(context: "FakeContext", message: SandboxMessage) -> None:
    """Answer every render request with a successful result."""
    payload = message.payload or {}
    context.deliver(
        protocol.render_result(
            {"html": "<div>ok</div>", "framework": payload.get("framework"), "bytes": len(payload.get("code", ""))},
            message.id,
        )
    )


class FakeContext(IsolatedContext):
    """In-process context that records posts and answers through ``responder``."""

    def __init__(self, bus: MessageBus, responder: Responder | None = render_ok, handle: str | None = None) -> None:
        super().__init__(bus, handle)
        self.responder = responder
        self.posted: list[SandboxMessage] = []
        self.closed = False

    async def start(self) -> None:
        self.deliver(protocol.ready())

    async def post(self, message: SandboxMessage) -> None:
        self.posted.append(message)
        if self.responder is not None:
            self.responder(self, message)

    async def close(self) -> None:
        self.closed = True


class FakeProvider:
    """Generation provider returning a canned payload."""

    def __init__(self, payload: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.requests: list[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload

    def close(self) -> None:
        pass
