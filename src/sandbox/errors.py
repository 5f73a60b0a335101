"""Sandbox error taxonomy."""


class SandboxError(Exception):
    """Base class for isolated-context failures."""


class ProtocolError(SandboxError):
    """The context sent something the protocol does not allow."""


class ExecutionError(SandboxError):
    """The context reported a failure while handling the code."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class SandboxTimeoutError(SandboxError, TimeoutError):
    """No qualifying response before the deadline."""

    def __init__(self, timeout_ms: int, request_id: str | None = None) -> None:
        super().__init__(f"Sandbox did not respond within {timeout_ms} ms")
        self.timeout_ms = timeout_ms
        self.request_id = request_id


class ChannelBusyError(SandboxError):
    """A request is already outstanding on this channel."""


class ContextNotReadyError(SandboxError):
    """The context is not started or has not signalled readiness."""


__all__ = [
    "SandboxError",
    "ProtocolError",
    "ExecutionError",
    "SandboxTimeoutError",
    "ChannelBusyError",
    "ContextNotReadyError",
]
