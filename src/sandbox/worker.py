"""
Sandbox Worker
Runs as a separate process (``python -m sandbox.worker``). Reads one request
per stdin line and answers on stdout; logs go to stderr.

The worker never executes the code it receives. It validates it and wraps it
into a standalone preview document.
"""

import re
import sys
from typing import Any, BinaryIO

from core import LogContext, configure_logging, get_logger, get_settings
from core.hash import hash_string

from .errors import ProtocolError
from .preview import build_preview
from .protocol import (
    RENDER_COMPONENT,
    SANDBOX_READY,
    SandboxMessage,
    decode_message,
    encode_message,
    error,
    ready,
    render_result,
)

logger = get_logger(__name__)

SUPPORTED_FRAMEWORKS = {"react", "vue", "svelte"}

# Host-escape and storage access patterns rejected before wrapping
BLOCKED_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bwindow\s*\.\s*(parent|top|opener)\b"), "access to the host window"),
    (re.compile(r"\bdocument\s*\.\s*cookie\b"), "cookie access"),
    (re.compile(r"\b(localStorage|sessionStorage|indexedDB)\b"), "storage access"),
    (re.compile(r"\beval\s*\("), "eval"),
    (re.compile(r"\bnew\s+Function\s*\("), "dynamic function construction"),
    (re.compile(r"\bimportScripts\s*\("), "script import"),
]


def check_code(code: Any, max_size: int) -> str | None:
    """Reason the code is rejected, or None if it may be wrapped."""
    if not isinstance(code, str) or not code.strip():
        return "Code must be a non-empty string"
    size = len(code.encode("utf-8"))
    if size > max_size:
        return f"Code is {size} bytes, limit is {max_size}"
    for pattern, label in BLOCKED_PATTERNS:
        if pattern.search(code):
            return f"Blocked pattern: {label}"
    return None


def handle_message(message: SandboxMessage, max_size: int) -> SandboxMessage | None:
    """Answer one request; None for messages that need no answer."""
    if message.type == SANDBOX_READY:
        return None
    if message.type != RENDER_COMPONENT:
        return error(f"Unknown message type: {message.type}", message.id)

    payload = message.payload if isinstance(message.payload, dict) else {}
    code = payload.get("code")
    framework = payload.get("framework", "react")

    if framework not in SUPPORTED_FRAMEWORKS:
        return error(f"Unsupported framework: {framework}", message.id)
    problem = check_code(code, max_size)
    if problem:
        logger.info("render_rejected", id=message.id, reason=problem)
        return error(problem, message.id)

    document = build_preview(code, framework)
    return render_result(
        {
            "html": document,
            "framework": framework,
            "bytes": len(code.encode("utf-8")),
            "hash": hash_string(code, truncate=16),
        },
        message.id,
    )


def _send(out: BinaryIO, message: SandboxMessage) -> None:
    out.write(encode_message(message))
    out.flush()


def run(inp: BinaryIO, out: BinaryIO, max_size: int) -> None:
    """Serve requests until stdin closes."""
    _send(out, ready())
    for line in inp:
        if not line.strip():
            continue
        try:
            message = decode_message(line)
        except ProtocolError as e:
            logger.warning("worker_bad_line", error=str(e))
            _send(out, error(str(e)))
            continue

        with LogContext(request_id=message.id):
            reply = handle_message(message, max_size)
        if reply is not None:
            _send(out, reply)


def main() -> int:
    settings = get_settings()
    # stdout carries protocol messages
    configure_logging(settings.log_level, settings.json_logs, stream=sys.stderr)
    logger.info("worker_started", max_code_size=settings.sandbox_max_code_size)
    try:
        run(sys.stdin.buffer, sys.stdout.buffer, settings.sandbox_max_code_size)
    except (BrokenPipeError, KeyboardInterrupt):
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
