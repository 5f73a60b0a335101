"""Sandbox: isolated-context execution of generated component code."""

from .errors import (
    SandboxError,
    ProtocolError,
    ExecutionError,
    SandboxTimeoutError,
    ChannelBusyError,
    ContextNotReadyError,
)
from .protocol import (
    SandboxMessage,
    SANDBOX_READY,
    RENDER_COMPONENT,
    RENDER_RESULT,
    ERROR,
    TIMEOUT,
    encode_message,
    decode_message,
)
from .bus import Envelope, MessageBus
from .context import IsolatedContext, SubprocessContext
from .channel import ExecutionChannel, ChannelState
from .cache import RenderCache
from .preview import build_preview

__all__ = [
    # Errors
    "SandboxError",
    "ProtocolError",
    "ExecutionError",
    "SandboxTimeoutError",
    "ChannelBusyError",
    "ContextNotReadyError",
    # Protocol
    "SandboxMessage",
    "SANDBOX_READY",
    "RENDER_COMPONENT",
    "RENDER_RESULT",
    "ERROR",
    "TIMEOUT",
    "encode_message",
    "decode_message",
    # Transport
    "Envelope",
    "MessageBus",
    "IsolatedContext",
    "SubprocessContext",
    # Channel
    "ExecutionChannel",
    "ChannelState",
    "RenderCache",
    "build_preview",
]
