"""Isolated-context wire protocol.

One JSON object per line: ``{"type": ..., "payload": ..., "id": ...}``.
``id`` is the request correlation id; it is optional on the wire so contexts
that do not echo it still interoperate.
"""

from typing import Any

import msgspec

from .errors import ProtocolError

SANDBOX_READY = "sandbox-ready"
RENDER_COMPONENT = "render-component"
RENDER_RESULT = "render-result"
ERROR = "error"
# Host-internal; never sent over the wire
TIMEOUT = "timeout"

WIRE_TYPES = frozenset({SANDBOX_READY, RENDER_COMPONENT, RENDER_RESULT, ERROR})


class SandboxMessage(msgspec.Struct, omit_defaults=True):
    type: str
    payload: Any = None
    id: str | None = None


_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(SandboxMessage)


def encode_message(message: SandboxMessage) -> bytes:
    """Encode as one newline-terminated line."""
    if message.type == TIMEOUT:
        raise ProtocolError("timeout messages are host-internal")
    return _encoder.encode(message) + b"\n"


def decode_message(line: bytes | str) -> SandboxMessage:
    """
    Decode one line.

    Raises:
        ProtocolError: If the line is not a message object
    """
    data = line.encode("utf-8") if isinstance(line, str) else line
    try:
        return _decoder.decode(data.strip())
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise ProtocolError(f"Undecodable message: {e}") from e


def ready() -> SandboxMessage:
    return SandboxMessage(type=SANDBOX_READY)


def render_request(code: str, framework: str, request_id: str) -> SandboxMessage:
    return SandboxMessage(type=RENDER_COMPONENT, payload={"code": code, "framework": framework}, id=request_id)


def render_result(payload: dict[str, Any], request_id: str | None) -> SandboxMessage:
    return SandboxMessage(type=RENDER_RESULT, payload=payload, id=request_id)


def error(detail: str, request_id: str | None = None) -> SandboxMessage:
    return SandboxMessage(type=ERROR, payload={"error": detail}, id=request_id)


__all__ = [
    "SandboxMessage",
    "SANDBOX_READY",
    "RENDER_COMPONENT",
    "RENDER_RESULT",
    "ERROR",
    "TIMEOUT",
    "WIRE_TYPES",
    "encode_message",
    "decode_message",
    "ready",
    "render_request",
    "render_result",
    "error",
]
