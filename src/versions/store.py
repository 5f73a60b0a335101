"""Snapshot/Version Store.

Durable, most-recent-first history of named snapshots of the component
forest. One instance is built at startup and injected where needed.
"""

import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from returns.result import Failure, Result, Success

from canvas.models import ComponentNode, Forest, clone_forest
from core import get_logger
from core.id import new_version_id
from monitoring import metrics_collector

from .base import PersistentList
from .persistence import KeyValueStore

logger = get_logger(__name__)

VERSIONS_KEY = "artifact-versions"


def now_ms() -> int:
    return int(time.time() * 1000)


class VersionNotFoundError(Exception):
    def __init__(self, version_id: str) -> None:
        super().__init__(f"Version not found: {version_id}")
        self.version_id = version_id


class Version(BaseModel):
    """Immutable named snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_version_id)
    timestamp: int
    name: str = ""
    components: list[ComponentNode] = Field(default_factory=list)


class VersionStore(PersistentList[Version]):
    """
    Named snapshot history persisted under one key.

    Storage problems never reach the caller; see ``warnings``/``degraded``.

    Examples:
        >>> versions = VersionStore(MemoryKeyValueStore())
        >>> v1 = versions.save("v1", store.components)
        >>> versions.restore(v1.id)
    """

    store_name = "versions"

    def __init__(
        self,
        storage: KeyValueStore,
        key: str = VERSIONS_KEY,
        *,
        clock: Callable[[], int] = now_ms,
        max_versions: int | None = None,
    ) -> None:
        self.clock = clock
        super().__init__(storage, key, max_items=max_versions)

    def decode_item(self, raw: Any) -> Version:
        return Version.model_validate(raw)

    def encode_item(self, item: Version) -> Any:
        return item.model_dump(mode="json")

    def save(self, name: str, components: Forest) -> Version:
        """Snapshot ``components`` (deep copy) and prepend it to the history."""
        with self._lock:
            latest = self._items[0].timestamp if self._items else 0
            version = Version(
                timestamp=max(self.clock(), latest),
                name=name,
                components=clone_forest(components),
            )
            self.prepend(version)

        metrics_collector.record_version_operation("save")
        logger.info("version_saved", id=version.id, name=name, count=len(self))
        return version.model_copy(deep=True)

    def list(self) -> list[Version]:
        """All versions, most recent first."""
        return [v.model_copy(deep=True) for v in self.snapshot()]

    def get(self, version_id: str) -> Result[Version, VersionNotFoundError]:
        version = next((v for v in self.snapshot() if v.id == version_id), None)
        if version is None:
            return Failure(VersionNotFoundError(version_id))
        return Success(version.model_copy(deep=True))

    def restore(self, version_id: str) -> Result[Forest, VersionNotFoundError]:
        """Fresh deep copy of a saved forest; history is untouched."""
        result = self.get(version_id).map(lambda v: clone_forest(v.components))
        if isinstance(result, Success):
            metrics_collector.record_version_operation("restore")
            logger.info("version_restored", id=version_id)
        return result

    def delete(self, version_id: str) -> bool:
        with self._lock:
            remaining = [v for v in self._items if v.id != version_id]
            if len(remaining) == len(self._items):
                return False
            self.set_items(remaining)

        metrics_collector.record_version_operation("delete")
        logger.info("version_deleted", id=version_id)
        return True

    def clear(self) -> None:
        """Drop the entire history (irreversible)."""
        self.set_items([])
        metrics_collector.record_version_operation("clear")
        logger.info("versions_cleared", key=self.key)


__all__ = ["Version", "VersionStore", "VersionNotFoundError", "VERSIONS_KEY"]
