"""Key-value persistence backends.

Values are JSON text stored under a string key, the same contract as the
browser's localStorage. Backends raise ``PersistenceError``; stores built on
top of them catch it at their boundary.
"""

import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from core import get_logger

logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class PersistenceError(Exception):
    """A read or write against the backing store failed."""


class QuotaExceededError(PersistenceError):
    def __init__(self, key: str, needed: int, quota: int) -> None:
        super().__init__(f"Quota exceeded writing '{key}': {needed} bytes > {quota} bytes")
        self.key = key
        self.needed = needed
        self.quota = quota


class CorruptDataError(PersistenceError):
    """Stored data exists but cannot be decoded."""


class KeyValueStore(ABC):
    """String-keyed text storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Stored text, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store text under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; absent keys are not an error."""

    @abstractmethod
    def keys(self) -> list[str]:
        """All stored keys."""


class MemoryKeyValueStore(KeyValueStore):
    """
    In-process store with an optional total byte quota.

    Examples:
        >>> storage = MemoryKeyValueStore(quota_bytes=1024)
        >>> storage.set("artifact-versions", "[]")
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self.quota_bytes is not None:
                others = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
                needed = others + len(value.encode("utf-8"))
                if needed > self.quota_bytes:
                    raise QuotaExceededError(key, needed, self.quota_bytes)
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def usage(self) -> int:
        """Bytes currently stored."""
        return sum(len(v.encode("utf-8")) for v in self._data.values())


class FileKeyValueStore(KeyValueStore):
    """
    One ``<key>.json`` file per key inside ``directory``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so a crash mid-write leaves the old value.
    """

    def __init__(self, directory: Path | str, quota_bytes: int | None = None) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        data = value.encode("utf-8")
        if self.quota_bytes is not None and len(data) > self.quota_bytes:
            raise QuotaExceededError(key, len(data), self.quota_bytes)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write '{key}': {e}") from e

        logger.debug("kv_write", key=key, bytes=len(data))

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove '{key}': {e}") from e

    def keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


__all__ = [
    "PersistenceError",
    "QuotaExceededError",
    "CorruptDataError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
]
