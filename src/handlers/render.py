"""Render Handler.

Glues the core together: edit -> tree mutation -> optional snapshot ->
component code -> sandbox -> render result -> tree update.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from returns.result import Failure, Result, Success

from canvas import ComponentTreeStore, Forest, TreeError, generate_react_code
from clients import GenerationError, GenerationProvider
from core import GenerationRequest, RenderRequest, get_logger
from monitoring import metrics_collector, trace_operation_async
from sandbox import ExecutionChannel, IsolatedContext, RenderCache, SandboxError
from versions import GenerationHistory, VersionStore

logger = get_logger(__name__)

RENDERED_PROP = "rendered"
RENDER_CANCELLED = "RenderCancelled"


@dataclass
class RenderOutcome:
    """Result of one render, shown in place of the artifact on failure."""

    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    cached: bool = False
    version_id: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GenerateOutcome:
    success: bool
    components: Forest = field(default_factory=list)
    error: str | None = None
    error_type: str | None = None
    history_id: str | None = None
    version_id: str | None = None
    render: RenderOutcome | None = None


def _failure(error: Exception, start: float) -> RenderOutcome:
    return RenderOutcome(
        success=False,
        error=str(error),
        error_type=type(error).__name__,
        duration_ms=(time.time() - start) * 1000,
    )


class RenderHandler:
    """Orchestrates renders and generations against one isolated context."""

    def __init__(
        self,
        store: ComponentTreeStore,
        versions: VersionStore,
        channel: ExecutionChannel,
        context: IsolatedContext,
        cache: RenderCache | None = None,
        history: GenerationHistory | None = None,
        provider: GenerationProvider | None = None,
        snapshot_on_render: bool = False,
    ) -> None:
        self.store = store
        self.versions = versions
        self.channel = channel
        self.context = context
        self.cache = cache
        self.history = history
        self.provider = provider
        self.snapshot_on_render = snapshot_on_render
        self.last_outcome: RenderOutcome | None = None

    def component_code(
        self,
        node_id: str | None = None,
        app_state: dict[str, Any] | None = None,
        api_data: dict[str, str] | None = None,
    ) -> Result[str, TreeError]:
        """Code for the whole forest, or for the subtree rooted at ``node_id``."""
        if node_id is None:
            return Success(generate_react_code(self.store.components, app_state, api_data))
        return self.store.get(node_id).map(lambda node: generate_react_code([node], app_state, api_data))

    async def render(
        self,
        node_id: str | None = None,
        *,
        framework: str = "react",
        app_state: dict[str, Any] | None = None,
        api_data: dict[str, str] | None = None,
        snapshot_name: str | None = None,
    ) -> RenderOutcome:
        """Render the current tree (or one subtree) in the sandbox."""
        code = self.component_code(node_id, app_state, api_data)
        if isinstance(code, Failure):
            return _failure(code.failure(), time.time())
        return await self.render_code(
            code.unwrap(), framework, target_id=node_id, snapshot_name=snapshot_name
        )

    async def render_code(
        self,
        code: str,
        framework: str = "react",
        *,
        target_id: str | None = None,
        snapshot_name: str | None = None,
    ) -> RenderOutcome:
        """
        Send ``code`` through the sandbox.

        Sandbox failures come back as an unsuccessful ``RenderOutcome``;
        ``ChannelBusyError`` included. A request abandoned through
        ``cancel()`` yields ``error_type="RenderCancelled"``; cancelling the
        calling task still raises ``asyncio.CancelledError``.
        """
        start = time.time()
        try:
            request = RenderRequest(code=code, framework=framework)
        except PydanticValidationError as e:
            return _failure(e, start)

        framework = request.framework.value
        async with trace_operation_async("sandbox_render", framework=framework, bytes=len(code)):
            cached = self.cache.get(code, framework) if self.cache else None
            if cached is not None:
                outcome = RenderOutcome(success=True, result=cached, cached=True)
            else:
                try:
                    result = await self.channel.execute(self.context, request.code, framework)
                except SandboxError as e:
                    metrics_collector.record_error(type(e).__name__, "render_handler")
                    logger.warning("render_failed", error_type=type(e).__name__, error=str(e))
                    self.last_outcome = _failure(e, start)
                    return self.last_outcome
                except asyncio.CancelledError:
                    task = asyncio.current_task()
                    if task is not None and task.cancelling():
                        raise
                    logger.info("render_cancelled")
                    self.last_outcome = RenderOutcome(
                        success=False,
                        error="Render cancelled",
                        error_type=RENDER_CANCELLED,
                        duration_ms=(time.time() - start) * 1000,
                    )
                    return self.last_outcome

                if not isinstance(result, dict):
                    result = {"value": result}
                if self.cache:
                    self.cache.set(code, framework, result)
                outcome = RenderOutcome(success=True, result=result)

        if target_id is not None:
            self._record_render(target_id, outcome.result or {})
        if snapshot_name is not None or self.snapshot_on_render:
            version = self.versions.save(snapshot_name or "Render", self.store.components)
            outcome.version_id = version.id

        outcome.duration_ms = (time.time() - start) * 1000
        logger.info("render_complete", cached=outcome.cached, duration_ms=outcome.duration_ms)
        self.last_outcome = outcome
        return outcome

    def _record_render(self, node_id: str, result: dict[str, Any]) -> None:
        """Write render metadata back through the store's single-writer path."""
        summary = {k: result[k] for k in ("hash", "bytes", "framework") if k in result}
        updated = self.store.update(node_id, {"props": {RENDERED_PROP: summary}})
        if isinstance(updated, Failure):
            # Node removed while the render was in flight
            logger.info("render_target_gone", id=node_id, error=str(updated.failure()))

    async def apply_edit(
        self,
        edit: Callable[[ComponentTreeStore], Result[Any, TreeError]],
        *,
        snapshot_name: str | None = None,
        render: bool = True,
    ) -> tuple[Result[Any, TreeError], RenderOutcome | None]:
        """
        Apply one user edit, then optionally snapshot and re-render.

        Rejected edits are returned untouched and trigger nothing.
        """
        result = edit(self.store)
        if isinstance(result, Failure):
            return result, None

        if snapshot_name is not None:
            self.versions.save(snapshot_name, self.store.components)
        outcome = await self.render() if render else None
        return result, outcome

    async def generate(
        self,
        request: GenerationRequest,
        *,
        append: bool = False,
        render: bool = True,
        snapshot: bool = True,
    ) -> GenerateOutcome:
        """Prompt -> provider -> ingest -> history -> snapshot -> render."""
        if self.provider is None:
            return GenerateOutcome(success=False, error="No generation provider configured", error_type="GenerationError")

        async with trace_operation_async("generate", prompt=request.prompt[:50]):
            try:
                payload = await asyncio.to_thread(self.provider.generate, request)
            except GenerationError as e:
                metrics_collector.record_error("GenerationError", "render_handler")
                return GenerateOutcome(success=False, error=str(e), error_type=type(e).__name__)

            ingested = self.store.ingest_generation(payload, append=append)
            if isinstance(ingested, Failure):
                error = ingested.failure()
                return GenerateOutcome(success=False, error=str(error), error_type=type(error).__name__)

        forest = ingested.unwrap()
        outcome = GenerateOutcome(success=True, components=forest)
        if self.history is not None:
            outcome.history_id = self.history.add(request, forest).id
        if snapshot:
            outcome.version_id = self.versions.save(f"Generated: {request.prompt[:40]}", forest).id
        if render:
            outcome.render = await self.render(framework=request.framework.value)
        return outcome

    def cancel(self) -> bool:
        """Abandon the in-flight render, if any."""
        return self.channel.cancel()


__all__ = ["RenderHandler", "RenderOutcome", "GenerateOutcome"]
