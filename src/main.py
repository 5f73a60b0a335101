"""
Artifact Service - Main Entry Point
HTTP surface over the component tree, sandbox renderer and version history.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from injector import Injector
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel, Field
from returns.result import Failure, Result

from canvas import (
    ComponentNode,
    ComponentTreeStore,
    DuplicateNodeError,
    GenerationPayloadError,
    InvalidEditError,
    LockedNodeError,
    NodeNotFoundError,
    SnapshotFormatError,
    all_handles,
    cursor_for,
)
from canvas.geometry import Direction, rotation_handle_position
from clients import DeploymentClient, DeploymentError, HTTPGenerationProvider
from core import GenerationRequest, Settings, configure_logging, create_container, get_logger
from core.tracing import get_tracer, init_tracer
from handlers import GenerateOutcome, RenderHandler, RenderOutcome
from monitoring import metrics_collector
from sandbox import ContextNotReadyError, ExecutionChannel, IsolatedContext, build_preview
from versions import AutoSaver, GenerationHistory, GradientPreset, PresetStore, VersionNotFoundError, VersionStore

logger = get_logger(__name__)

SERVICE_NAME = "artifact-service"
SERVICE_VERSION = "0.1.0"

ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (NodeNotFoundError, 404),
    (VersionNotFoundError, 404),
    (DuplicateNodeError, 409),
    (LockedNodeError, 409),
    (InvalidEditError, 422),
    (GenerationPayloadError, 422),
    (SnapshotFormatError, 422),
]

OUTCOME_STATUS = {
    "NodeNotFoundError": 404,
    "ChannelBusyError": 409,
    "RenderCancelled": 409,
    "ValidationError": 422,
    "ExecutionError": 422,
    "GenerationPayloadError": 422,
    "DuplicateNodeError": 409,
    "ProtocolError": 502,
    "GenerationError": 502,
    "ContextNotReadyError": 503,
    "SandboxTimeoutError": 504,
}


def _status_for(error: Exception) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def _unwrap(result: Result) -> Any:
    """Return the success value or raise the matching HTTP error."""
    if isinstance(result, Failure):
        error = result.failure()
        raise HTTPException(
            status_code=_status_for(error),
            detail={"error": str(error), "error_type": type(error).__name__},
        )
    return result.unwrap()


def _dump(nodes: list[ComponentNode]) -> list[dict[str, Any]]:
    return [node.model_dump(mode="json") for node in nodes]


def _outcome_response(outcome: RenderOutcome | GenerateOutcome, body: dict[str, Any]) -> JSONResponse:
    status = 200 if outcome.success else OUTCOME_STATUS.get(outcome.error_type or "", 500)
    return JSONResponse(status_code=status, content=body)


# Request models


class AddComponentRequest(BaseModel):
    component: ComponentNode
    parent_id: str | None = None
    index: int | None = None


class MoveRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    x: float | None = None
    y: float | None = None


class ResizeRequest(BaseModel):
    direction: str
    dx: float = 0.0
    dy: float = 0.0


class RotateRequest(BaseModel):
    delta: float | None = None
    angle: float | None = None


class RotateTowardsRequest(BaseModel):
    pointer_x: float
    pointer_y: float


class RenderBody(BaseModel):
    node_id: str | None = None
    code: str | None = None
    framework: str = "react"
    app_state: dict[str, Any] = Field(default_factory=dict)
    api_data: dict[str, str] = Field(default_factory=dict)
    snapshot_name: str | None = None


class GenerateBody(BaseModel):
    request: GenerationRequest
    append: bool = False
    render: bool = True


class SaveVersionRequest(BaseModel):
    name: str = Field(default="", max_length=200)


class ColorRequest(BaseModel):
    color: str
    type: Literal["solid", "gradient"] = "solid"


class DeployRequest(BaseModel):
    platform: str
    config: dict[str, Any] = Field(default_factory=dict)


# Dependencies


def get_container(request: Request) -> Injector:
    return request.app.state.container


def get_store(container: Injector = Depends(get_container)) -> ComponentTreeStore:
    return container.get(ComponentTreeStore)


def get_handler(container: Injector = Depends(get_container)) -> RenderHandler:
    return container.get(RenderHandler)


def get_versions(container: Injector = Depends(get_container)) -> VersionStore:
    return container.get(VersionStore)


def get_presets(container: Injector = Depends(get_container)) -> PresetStore:
    return container.get(PresetStore)


# Lifespan


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the container, restore auto-saved work and start the sandbox."""
    if app.state.container is None:
        app.state.container = create_container()
    container: Injector = app.state.container
    settings = container.get(Settings)

    configure_logging(settings.log_level, settings.json_logs)
    init_tracer(SERVICE_NAME)
    logger.info("service_starting", version=SERVICE_VERSION)

    store = container.get(ComponentTreeStore)
    autosaver = container.get(AutoSaver)
    restored = autosaver.load_components()
    if restored:
        if isinstance(store.replace(restored), Failure):
            logger.warning("autosave_restore_rejected")
        else:
            logger.info("autosave_restored", components=len(restored))
    detach = autosaver.attach(store)

    context = container.get(IsolatedContext)
    try:
        await context.start()
    except ContextNotReadyError as e:
        # Renders report ContextNotReadyError until the worker is fixed
        logger.warning("sandbox_unavailable", error=str(e))

    logger.info("service_ready", components=len(store))

    yield

    logger.info("service_stopping")
    container.get(RenderHandler).cancel()
    detach()
    autosaver.flush()
    await context.close()
    container.get(HTTPGenerationProvider).close()
    container.get(DeploymentClient).close()
    logger.info("service_stopped")


def create_app(container: Injector | None = None) -> FastAPI:
    """Build the application; the container is created at startup if not given."""
    application = FastAPI(
        title="Artifact Service",
        description="Component tree editing, sandboxed rendering and version history",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    application.state.container = container
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(_routes())
    return application


def _routes() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health(container: Injector = Depends(get_container)):
        store = container.get(ComponentTreeStore)
        context = container.get(IsolatedContext)
        channel = container.get(ExecutionChannel)
        versions = container.get(VersionStore)
        tracer = get_tracer()
        return {
            "status": "healthy" if context.ready else "degraded",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "components": len(store),
            "revision": store.revision,
            "sandbox": {"ready": context.ready, "channel": channel.state.value},
            "storage": {"degraded": versions.degraded, "warnings": versions.warnings[-5:]},
            "slow_operations": tracer.recent_notable() if tracer else [],
        }

    @router.get("/metrics")
    async def metrics():
        metrics_collector.update_uptime()
        return Response(content=metrics_collector.get_metrics(), media_type=CONTENT_TYPE_LATEST)

    # Components

    @router.get("/components")
    async def list_components(store: ComponentTreeStore = Depends(get_store)):
        return {"components": _dump(store.components), "revision": store.revision}

    @router.post("/components", status_code=201)
    async def add_component(body: AddComponentRequest, store: ComponentTreeStore = Depends(get_store)):
        _unwrap(store.add(body.component, body.parent_id, body.index))
        return _unwrap(store.get(body.component.id)).model_dump(mode="json")

    @router.put("/components")
    async def load_components(snapshot: dict[str, Any], store: ComponentTreeStore = Depends(get_store)):
        return {"components": _dump(_unwrap(store.load(snapshot)))}

    @router.delete("/components")
    async def clear_components(store: ComponentTreeStore = Depends(get_store)):
        store.clear()
        return {"components": []}

    @router.get("/components/serialize")
    async def serialize_components(store: ComponentTreeStore = Depends(get_store)):
        return store.serialize()

    @router.get("/components/{node_id}")
    async def get_component(node_id: str, store: ComponentTreeStore = Depends(get_store)):
        return _unwrap(store.get(node_id)).model_dump(mode="json")

    @router.patch("/components/{node_id}")
    async def update_component(
        node_id: str, partial: dict[str, Any], store: ComponentTreeStore = Depends(get_store)
    ):
        _unwrap(store.update(node_id, partial))
        return _unwrap(store.get(node_id)).model_dump(mode="json")

    @router.delete("/components/{node_id}")
    async def remove_component(node_id: str, store: ComponentTreeStore = Depends(get_store)):
        return _unwrap(store.remove(node_id)).model_dump(mode="json")

    @router.post("/components/{node_id}/move")
    async def move_component(node_id: str, body: MoveRequest, store: ComponentTreeStore = Depends(get_store)):
        if body.x is not None or body.y is not None:
            node = _unwrap(store.get(node_id))
            x = node.position.x if body.x is None else body.x
            y = node.position.y if body.y is None else body.y
            return _unwrap(store.move_to(node_id, x, y)).model_dump(mode="json")
        return _unwrap(store.move(node_id, body.dx, body.dy)).model_dump(mode="json")

    @router.post("/components/{node_id}/resize")
    async def resize_component(node_id: str, body: ResizeRequest, store: ComponentTreeStore = Depends(get_store)):
        return _unwrap(store.resize(node_id, body.direction, body.dx, body.dy)).model_dump(mode="json")

    @router.post("/components/{node_id}/rotate")
    async def rotate_component(node_id: str, body: RotateRequest, store: ComponentTreeStore = Depends(get_store)):
        if body.angle is not None:
            return _unwrap(store.rotate_to(node_id, body.angle)).model_dump(mode="json")
        return _unwrap(store.rotate(node_id, body.delta or 0.0)).model_dump(mode="json")

    @router.post("/components/{node_id}/rotate-towards")
    async def rotate_towards(
        node_id: str, body: RotateTowardsRequest, store: ComponentTreeStore = Depends(get_store)
    ):
        return _unwrap(store.rotate_towards(node_id, body.pointer_x, body.pointer_y)).model_dump(mode="json")

    @router.get("/components/{node_id}/handles")
    async def component_handles(
        node_id: str,
        store: ComponentTreeStore = Depends(get_store),
        container: Injector = Depends(get_container),
    ):
        settings = container.get(Settings)
        box = _unwrap(store.get(node_id)).box()
        handles = all_handles(box, settings.handle_margin)
        handles["rotate"] = rotation_handle_position(box, settings.rotation_handle_offset)
        return {
            "handles": {name: {"x": x, "y": y} for name, (x, y) in handles.items()},
            "cursors": {d.value: cursor_for(d) for d in Direction},
        }

    # Rendering

    @router.post("/render")
    async def render(body: RenderBody, handler: RenderHandler = Depends(get_handler)):
        if body.code is not None:
            outcome = await handler.render_code(
                body.code, body.framework, target_id=body.node_id, snapshot_name=body.snapshot_name
            )
        else:
            outcome = await handler.render(
                body.node_id,
                framework=body.framework,
                app_state=body.app_state,
                api_data=body.api_data,
                snapshot_name=body.snapshot_name,
            )
        return _outcome_response(outcome, outcome.to_dict())

    @router.post("/render/cancel")
    async def cancel_render(handler: RenderHandler = Depends(get_handler)):
        return {"cancelled": handler.cancel()}

    @router.get("/code")
    async def component_code(node_id: str | None = None, handler: RenderHandler = Depends(get_handler)):
        return {"code": _unwrap(handler.component_code(node_id))}

    @router.get("/preview", response_class=HTMLResponse)
    async def preview(
        node_id: str | None = None,
        framework: str = "react",
        handler: RenderHandler = Depends(get_handler),
    ):
        return HTMLResponse(build_preview(_unwrap(handler.component_code(node_id)), framework))

    @router.post("/generate")
    async def generate(body: GenerateBody, handler: RenderHandler = Depends(get_handler)):
        outcome = await handler.generate(body.request, append=body.append, render=body.render)
        return _outcome_response(
            outcome,
            {
                "success": outcome.success,
                "components": _dump(outcome.components),
                "error": outcome.error,
                "error_type": outcome.error_type,
                "history_id": outcome.history_id,
                "version_id": outcome.version_id,
                "render": outcome.render.to_dict() if outcome.render else None,
            },
        )

    @router.get("/history")
    async def generation_history(container: Injector = Depends(get_container)):
        return {"entries": [e.model_dump(mode="json") for e in container.get(GenerationHistory).entries()]}

    @router.delete("/history")
    async def clear_history(container: Injector = Depends(get_container)):
        container.get(GenerationHistory).clear()
        return {"entries": []}

    # Versions

    @router.get("/versions")
    async def list_versions(versions: VersionStore = Depends(get_versions)):
        return {
            "versions": [v.model_dump(mode="json") for v in versions.list()],
            "degraded": versions.degraded,
        }

    @router.post("/versions", status_code=201)
    async def save_version(
        body: SaveVersionRequest,
        versions: VersionStore = Depends(get_versions),
        store: ComponentTreeStore = Depends(get_store),
    ):
        version = versions.save(body.name, store.components)
        return {"version": version.model_dump(mode="json"), "degraded": versions.degraded}

    @router.delete("/versions")
    async def clear_versions(versions: VersionStore = Depends(get_versions)):
        versions.clear()
        return {"versions": []}

    @router.get("/versions/{version_id}")
    async def get_version(version_id: str, versions: VersionStore = Depends(get_versions)):
        return _unwrap(versions.get(version_id)).model_dump(mode="json")

    @router.post("/versions/{version_id}/restore")
    async def restore_version(
        version_id: str,
        versions: VersionStore = Depends(get_versions),
        store: ComponentTreeStore = Depends(get_store),
    ):
        forest = _unwrap(versions.restore(version_id))
        return {"components": _dump(_unwrap(store.replace(forest)))}

    @router.delete("/versions/{version_id}")
    async def delete_version(version_id: str, versions: VersionStore = Depends(get_versions)):
        if not versions.delete(version_id):
            raise HTTPException(
                status_code=404,
                detail={"error": str(VersionNotFoundError(version_id)), "error_type": "VersionNotFoundError"},
            )
        return {"deleted": version_id}

    # Presets

    @router.get("/presets/colors")
    async def colors(limit: int = Query(default=20, ge=1, le=50), presets: PresetStore = Depends(get_presets)):
        return {
            "recent": [c.model_dump(mode="json") for c in presets.recent_colors(limit)],
            "custom": presets.custom_colors(),
        }

    @router.post("/presets/colors/recent", status_code=201)
    async def add_recent_color(body: ColorRequest, presets: PresetStore = Depends(get_presets)):
        try:
            return presets.add_recent_color(body.color, body.type).model_dump(mode="json")
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"error": str(e)}) from e

    @router.post("/presets/colors/custom")
    async def add_custom_color(body: ColorRequest, presets: PresetStore = Depends(get_presets)):
        try:
            added = presets.add_custom_color(body.color)
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"error": str(e)}) from e
        return {"added": added, "custom": presets.custom_colors()}

    @router.delete("/presets/colors/custom")
    async def remove_custom_color(color: str, presets: PresetStore = Depends(get_presets)):
        return {"removed": presets.remove_custom_color(color), "custom": presets.custom_colors()}

    @router.get("/presets/gradients")
    async def gradients(presets: PresetStore = Depends(get_presets)):
        return {"presets": [p.model_dump(mode="json", by_alias=True) for p in presets.gradient_presets()]}

    @router.put("/presets/gradients")
    async def save_gradient(preset: GradientPreset, presets: PresetStore = Depends(get_presets)):
        presets.save_gradient_preset(preset)
        return preset.model_dump(mode="json", by_alias=True)

    @router.delete("/presets/gradients/{preset_id}")
    async def delete_gradient(preset_id: str, presets: PresetStore = Depends(get_presets)):
        if not presets.delete_gradient_preset(preset_id):
            raise HTTPException(status_code=404, detail={"error": f"Gradient preset not found: {preset_id}"})
        return {"deleted": preset_id}

    @router.delete("/presets")
    async def clear_presets(presets: PresetStore = Depends(get_presets)):
        presets.clear_all()
        return {"cleared": True, "degraded": presets.degraded}

    # Deployments

    @router.post("/deployments", status_code=202)
    async def deploy(body: DeployRequest, container: Injector = Depends(get_container)):
        client = container.get(DeploymentClient)
        try:
            status = await asyncio.to_thread(client.deploy, body.platform, body.config)
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"error": str(e)}) from e
        except DeploymentError as e:
            raise HTTPException(status_code=502, detail={"error": str(e)}) from e
        return status.model_dump(mode="json", by_alias=True)

    @router.get("/deployments/{platform}/{deployment_id}")
    async def deployment_status(platform: str, deployment_id: str, container: Injector = Depends(get_container)):
        client = container.get(DeploymentClient)
        try:
            status = await asyncio.to_thread(client.get_status, platform, deployment_id)
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"error": str(e)}) from e
        except DeploymentError as e:
            raise HTTPException(status_code=502, detail={"error": str(e)}) from e
        return status.model_dump(mode="json", by_alias=True)

    @router.delete("/deployments/{platform}/{deployment_id}")
    async def cancel_deployment(platform: str, deployment_id: str, container: Injector = Depends(get_container)):
        client = container.get(DeploymentClient)
        try:
            cancelled = await asyncio.to_thread(client.cancel, platform, deployment_id)
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"error": str(e)}) from e
        except DeploymentError as e:
            raise HTTPException(status_code=502, detail={"error": str(e)}) from e
        return {"cancelled": cancelled}

    return router


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from core import get_settings

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
