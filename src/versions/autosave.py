"""Debounced auto-save of the canvas."""

import asyncio
from collections.abc import Callable
from typing import Any

from canvas.models import Forest, forest_adapter
from canvas.store import ComponentTreeStore
from core import dumps, get_logger, loads
from core.tracing import trace_operation

from .base import STORAGE_ERRORS, report_failure
from .persistence import KeyValueStore
from .store import now_ms

logger = get_logger(__name__)

AUTOSAVE_KEY = "canvas-auto-save"
DEFAULT_DELAY = 2.0
MAX_AGE_MS = 24 * 60 * 60 * 1000


class AutoSaver:
    """
    Writes the canvas after ``delay`` seconds without further changes.

    Outside a running event loop, ``trigger`` saves immediately.
    """

    store_name = "autosave"

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        delay: float = DEFAULT_DELAY,
        key: str = AUTOSAVE_KEY,
        max_age_ms: int = MAX_AGE_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.storage = storage
        self.delay = delay
        self.key = key
        self.max_age_ms = max_age_ms
        self.clock = clock
        self.warnings: list[str] = []
        self._pending: asyncio.TimerHandle | None = None
        self._pending_state: dict[str, Any] | None = None

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, components: Forest, **state: Any) -> None:
        """Schedule a save, replacing any save still waiting."""
        self._cancel_pending()
        self._pending_state = {"components": forest_adapter.dump_python(components, mode="json"), **state}

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None or self.delay <= 0:
            self._flush_pending()
            return
        self._pending = loop.call_later(self.delay, self._flush_pending)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _flush_pending(self) -> None:
        self._pending = None
        state, self._pending_state = self._pending_state, None
        if state is not None:
            self._write(state)

    def flush(self) -> bool:
        """Write a waiting save now; False if nothing was pending."""
        if self._pending_state is None:
            return False
        self._cancel_pending()
        self._flush_pending()
        return True

    def save_now(self, components: Forest, **state: Any) -> bool:
        self._cancel_pending()
        self._pending_state = None
        return self._write({"components": forest_adapter.dump_python(components, mode="json"), **state})

    def _write(self, state: dict[str, Any]) -> bool:
        data = {**state, "timestamp": self.clock()}
        try:
            with trace_operation("autosave_write", key=self.key):
                self.storage.set(self.key, dumps(data))
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "save", e, self.warnings)
            return False
        logger.debug("autosave_written", key=self.key, nodes=len(state.get("components", [])))
        return True

    def load(self) -> dict[str, Any] | None:
        """Last auto-save, or None if absent, unreadable or older than ``max_age_ms``."""
        try:
            raw = self.storage.get(self.key)
            if raw is None:
                return None
            data = loads(raw)
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "load", e, self.warnings)
            return None

        if not isinstance(data, dict):
            return None
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, (int, float)) or self.clock() - timestamp >= self.max_age_ms:
            logger.info("autosave_expired", key=self.key)
            return None
        return data

    def load_components(self) -> Forest | None:
        """Forest from the last auto-save, if one is usable."""
        data = self.load()
        if data is None:
            return None
        try:
            return forest_adapter.validate_python(data.get("components", []))
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "load", e, self.warnings)
            return None

    def clear(self) -> None:
        self._cancel_pending()
        self._pending_state = None
        try:
            self.storage.remove(self.key)
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "remove", e, self.warnings)

    def attach(self, store: ComponentTreeStore) -> Callable[[], None]:
        """Auto-save on every committed change; returns the detach callable."""
        return store.subscribe(lambda components: self.trigger(components, revision=store.revision))


__all__ = ["AutoSaver", "AUTOSAVE_KEY", "MAX_AGE_MS"]
