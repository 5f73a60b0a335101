"""Dependency Injection Container."""

from injector import Injector, Module, provider, singleton

from canvas import ComponentTreeStore
from clients import DeploymentClient, HTTPGenerationProvider
from handlers import RenderHandler
from sandbox import ExecutionChannel, IsolatedContext, MessageBus, RenderCache, SubprocessContext
from versions import (
    AutoSaver,
    FileKeyValueStore,
    GenerationHistory,
    KeyValueStore,
    PresetStore,
    VersionStore,
)

from .config import Settings, get_settings


class CoreModule(Module):
    """Core dependencies."""

    def __init__(self, settings: Settings, storage: KeyValueStore | None = None) -> None:
        self.settings = settings
        self.storage = storage

    @singleton
    @provider
    def provide_settings(self) -> Settings:
        return self.settings

    @singleton
    @provider
    def provide_storage(self, settings: Settings) -> KeyValueStore:
        """Provide key-value storage (file backed unless one was given)."""
        if self.storage is not None:
            return self.storage
        return FileKeyValueStore(settings.storage_dir, quota_bytes=settings.storage_quota_bytes)

    @singleton
    @provider
    def provide_tree_store(self, settings: Settings) -> ComponentTreeStore:
        return ComponentTreeStore(snap_to_grid=settings.snap_to_grid, grid_size=settings.grid_size)

    @singleton
    @provider
    def provide_version_store(self, storage: KeyValueStore) -> VersionStore:
        return VersionStore(storage)

    @singleton
    @provider
    def provide_history(self, storage: KeyValueStore) -> GenerationHistory:
        return GenerationHistory(storage)

    @singleton
    @provider
    def provide_presets(self, storage: KeyValueStore) -> PresetStore:
        return PresetStore(storage)

    @singleton
    @provider
    def provide_autosaver(self, storage: KeyValueStore, settings: Settings) -> AutoSaver:
        return AutoSaver(storage, delay=settings.autosave_delay)


class SandboxModule(Module):
    """Isolation boundary: bus, context, channel and cache."""

    @singleton
    @provider
    def provide_bus(self) -> MessageBus:
        return MessageBus()

    @singleton
    @provider
    def provide_context(self, bus: MessageBus, settings: Settings) -> IsolatedContext:
        """Provide the worker context (started by the application lifespan)."""
        return SubprocessContext(
            bus,
            command=settings.sandbox_command or None,
            start_timeout=settings.sandbox_start_timeout,
            max_code_size=settings.sandbox_max_code_size,
        )

    @singleton
    @provider
    def provide_channel(self, bus: MessageBus, settings: Settings) -> ExecutionChannel:
        return ExecutionChannel(bus, timeout_ms=settings.sandbox_timeout_ms)

    @singleton
    @provider
    def provide_render_cache(self, settings: Settings) -> RenderCache:
        return RenderCache(max_size=settings.render_cache_size, ttl_seconds=settings.render_cache_ttl)


class ServiceModule(Module):
    """External collaborators and the orchestrator."""

    @singleton
    @provider
    def provide_generation_provider(self, settings: Settings) -> HTTPGenerationProvider:
        return HTTPGenerationProvider(settings.generation_url, timeout=settings.generation_timeout)

    @singleton
    @provider
    def provide_deployment_client(self, settings: Settings) -> DeploymentClient:
        return DeploymentClient(settings.deployment_url, timeout=settings.deployment_timeout)

    @singleton
    @provider
    def provide_render_handler(
        self,
        settings: Settings,
        store: ComponentTreeStore,
        versions: VersionStore,
        history: GenerationHistory,
        channel: ExecutionChannel,
        context: IsolatedContext,
        cache: RenderCache,
        generation: HTTPGenerationProvider,
    ) -> RenderHandler:
        """Provide the orchestrator with all dependencies."""
        return RenderHandler(
            store=store,
            versions=versions,
            channel=channel,
            context=context,
            cache=cache if settings.enable_render_cache else None,
            history=history,
            provider=generation,
            snapshot_on_render=settings.snapshot_on_render,
        )


def create_container(settings: Settings | None = None, storage: KeyValueStore | None = None) -> Injector:
    """Create configured injector."""
    return Injector([CoreModule(settings or get_settings(), storage), SandboxModule(), ServiceModule()])
