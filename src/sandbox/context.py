"""Isolated contexts.

A context is the far side of the isolation boundary. It receives requests
through ``post`` and publishes everything it sends back on the host
``MessageBus`` with itself as the envelope source.
"""

import asyncio
import contextlib
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from core import get_logger
from core.id import new_context_id
from monitoring import metrics_collector

from .bus import Envelope, MessageBus
from .errors import ContextNotReadyError, ProtocolError, SandboxError
from .protocol import SANDBOX_READY, SandboxMessage, decode_message, encode_message

logger = get_logger(__name__)

# Directory holding the top-level packages, so the worker resolves `sandbox.worker`
SOURCE_ROOT = Path(__file__).resolve().parent.parent

# render-result lines carry whole HTML documents
STREAM_LIMIT = 8 * 1024 * 1024


class IsolatedContext(ABC):
    """Abstract isolated rendering context."""

    def __init__(self, bus: MessageBus, handle: str | None = None) -> None:
        self.bus = bus
        self.handle = handle or new_context_id()
        self._ready = asyncio.Event()

    @property
    def ready(self) -> bool:
        """True once the context has posted ``sandbox-ready``."""
        return self._ready.is_set()

    async def wait_ready(self, timeout: float) -> None:
        """
        Raises:
            ContextNotReadyError: If readiness is not signalled in time
        """
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError as e:
            raise ContextNotReadyError(f"Context {self.handle} not ready after {timeout}s") from e

    def deliver(self, message: SandboxMessage) -> None:
        """Publish a message coming out of the context."""
        if message.type == SANDBOX_READY:
            self._ready.set()
        self.bus.post(Envelope(source=self, message=message))

    @abstractmethod
    async def start(self) -> None:
        """Bring the context up and wait for ``sandbox-ready``."""

    @abstractmethod
    async def post(self, message: SandboxMessage) -> None:
        """Send a message into the context."""

    @abstractmethod
    async def close(self) -> None:
        """Tear the context down; safe to call more than once."""

    async def __aenter__(self) -> "IsolatedContext":
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(handle={self.handle!r}, ready={self.ready})"


def default_worker_command() -> list[str]:
    return [sys.executable, "-m", "sandbox.worker"]


class SubprocessContext(IsolatedContext):
    """
    Context backed by a separate OS process.

    Speaks newline-delimited JSON over the child's stdin/stdout; the child's
    stderr is forwarded to the log.
    """

    def __init__(
        self,
        bus: MessageBus,
        command: list[str] | None = None,
        *,
        start_timeout: float = 10.0,
        max_code_size: int | None = None,
        handle: str | None = None,
    ) -> None:
        super().__init__(bus, handle)
        self.command = command or default_worker_command()
        self.max_code_size = max_code_size
        self.start_timeout = start_timeout
        self.process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        paths = [str(SOURCE_ROOT), env.get("PYTHONPATH", "")]
        env["PYTHONPATH"] = os.pathsep.join(p for p in paths if p)
        env["PYTHONUNBUFFERED"] = "1"
        if self.max_code_size is not None:
            env["ARTIFACT_SANDBOX_MAX_CODE_SIZE"] = str(self.max_code_size)
        return env

    async def start(self) -> None:
        """
        Spawn the worker and wait for its ready signal.

        Raises:
            ContextNotReadyError: If the process cannot start or never signals
        """
        if self.running:
            return

        logger.info("context_starting", handle=self.handle, command=self.command[0])
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise ContextNotReadyError(f"Failed to start context {self.handle}: {e}") from e

        self._tasks = [
            asyncio.create_task(self._read_stdout(), name=f"{self.handle}-stdout"),
            asyncio.create_task(self._read_stderr(), name=f"{self.handle}-stderr"),
        ]
        metrics_collector.context_started()

        try:
            await self.wait_ready(self.start_timeout)
        except ContextNotReadyError:
            await self.close()
            raise

        logger.info("context_ready", handle=self.handle, pid=self.process.pid)

    async def _read_stdout(self) -> None:
        assert self.process is not None and self.process.stdout is not None
        stream = self.process.stdout
        while True:
            try:
                line = await stream.readline()
            except ValueError as e:
                # Line longer than STREAM_LIMIT; the reader has already dropped it
                logger.warning("context_line_too_long", handle=self.handle, error=str(e))
                continue
            if not line:
                break
            if not line.strip():
                continue
            try:
                message = decode_message(line)
            except ProtocolError as e:
                logger.warning("context_bad_line", handle=self.handle, error=str(e))
                continue
            self.deliver(message)

        self._ready.clear()
        logger.info("context_stdout_closed", handle=self.handle)

    async def _read_stderr(self) -> None:
        assert self.process is not None and self.process.stderr is not None
        async for line in self.process.stderr:
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.debug("context_stderr", handle=self.handle, line=text)

    async def post(self, message: SandboxMessage) -> None:
        """
        Raises:
            ContextNotReadyError: If the process is not running
            SandboxError: If the pipe is broken
        """
        if not self.running or self.process is None or self.process.stdin is None:
            raise ContextNotReadyError(f"Context {self.handle} is not running")
        try:
            self.process.stdin.write(encode_message(message))
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise SandboxError(f"Context {self.handle} pipe closed: {e}") from e

    async def close(self) -> None:
        process, self.process = self.process, None
        self._ready.clear()
        if process is None:
            return

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

        metrics_collector.context_stopped()
        logger.info("context_closed", handle=self.handle, returncode=process.returncode)


__all__ = ["IsolatedContext", "SubprocessContext", "default_worker_command"]
