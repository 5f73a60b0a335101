"""Fault-tolerant persisted lists.

A ``PersistentList`` keeps its items in memory and mirrors them to a single
key as a JSON array. The in-memory list stays the source of truth: storage
failures are logged, counted and recorded in ``warnings`` but never raised.
"""

import threading
from typing import Any, Generic, TypeVar

from core import JSONParseError, dumps, get_logger, loads
from monitoring import metrics_collector

from .persistence import CorruptDataError, KeyValueStore, PersistenceError

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that mean "storage unusable", as opposed to programming errors
STORAGE_ERRORS = (PersistenceError, JSONParseError, ValueError, TypeError)


def report_failure(store: str, key: str, operation: str, error: Exception, warnings: list[str]) -> None:
    """Log and count a persistence failure caught at a store boundary."""
    message = f"{operation} failed for '{key}': {error}"
    warnings.append(message)
    metrics_collector.record_persistence_failure(store, operation)
    logger.warning(
        "persistence_failed",
        store=store,
        key=key,
        operation=operation,
        error_type=type(error).__name__,
        error=str(error),
    )


class PersistentList(Generic[T]):
    """
    Ordered list mirrored to a key-value store.

    Subclasses define ``decode_item``/``encode_item`` and may override
    ``default_items`` for the value used when nothing usable is stored.
    """

    store_name = "list"

    def __init__(self, storage: KeyValueStore, key: str, *, max_items: int | None = None) -> None:
        self.storage = storage
        self.key = key
        self.max_items = max_items
        self.warnings: list[str] = []
        self._lock = threading.RLock()
        self._items: list[T] = []
        self.load()

    def decode_item(self, raw: Any) -> T:
        raise NotImplementedError

    def encode_item(self, item: T) -> Any:
        raise NotImplementedError

    def default_items(self) -> list[T]:
        return []

    @property
    def degraded(self) -> bool:
        """True once any persistence operation has failed."""
        return bool(self.warnings)

    def clear_warnings(self) -> None:
        self.warnings.clear()

    def load(self) -> list[T]:
        """(Re)read the stored list; unusable data degrades to the defaults."""
        try:
            raw = self.storage.get(self.key)
            if raw is None:
                items = self.default_items()
            else:
                data = loads(raw)
                if not isinstance(data, list):
                    raise CorruptDataError(f"Expected a JSON array, got {type(data).__name__}")
                items = [self.decode_item(entry) for entry in data]
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "load", e, self.warnings)
            items = self.default_items()

        with self._lock:
            self._items = items[: self.max_items] if self.max_items else items
        logger.debug("list_loaded", store=self.store_name, key=self.key, count=len(self._items))
        return list(self._items)

    def persist(self) -> bool:
        """Write the current list; False (and a warning) on failure."""
        with self._lock:
            snapshot = list(self._items)
        try:
            self.storage.set(self.key, dumps([self.encode_item(item) for item in snapshot]))
        except STORAGE_ERRORS as e:
            report_failure(self.store_name, self.key, "save", e, self.warnings)
            return False
        return True

    def prepend(self, item: T) -> None:
        with self._lock:
            self._items.insert(0, item)
            if self.max_items:
                del self._items[self.max_items:]
        self.persist()

    def set_items(self, items: list[T]) -> None:
        with self._lock:
            self._items = items[: self.max_items] if self.max_items else items
        self.persist()

    def reset(self) -> list[T]:
        """Delete the stored key and fall back to the defaults."""
        try:
            self.storage.remove(self.key)
        except PersistenceError as e:
            report_failure(self.store_name, self.key, "remove", e, self.warnings)
        with self._lock:
            self._items = self.default_items()
        return list(self._items)

    def snapshot(self) -> list[T]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["PersistentList", "report_failure", "STORAGE_ERRORS"]
