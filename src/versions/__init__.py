"""Versions: persisted snapshots, history, presets and auto-save."""

from .persistence import (
    PersistenceError,
    QuotaExceededError,
    CorruptDataError,
    KeyValueStore,
    MemoryKeyValueStore,
    FileKeyValueStore,
)
from .base import PersistentList
from .store import Version, VersionStore, VersionNotFoundError
from .history import GenerationHistory, GenerationHistoryEntry
from .presets import PresetStore, ColorHistoryItem, GradientPreset, default_gradient_presets
from .autosave import AutoSaver

__all__ = [
    # Persistence
    "PersistenceError",
    "QuotaExceededError",
    "CorruptDataError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "PersistentList",
    # Versions
    "Version",
    "VersionStore",
    "VersionNotFoundError",
    # Supplements
    "GenerationHistory",
    "GenerationHistoryEntry",
    "PresetStore",
    "ColorHistoryItem",
    "GradientPreset",
    "default_gradient_presets",
    "AutoSaver",
]
