"""Color and gradient presets.

Three independent lists under the ``artifact-studio-*`` keys. Missing or
corrupt data degrades to an empty list, except gradients, which fall back to
the built-in presets.
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core import get_logger

from .base import PersistentList
from .persistence import KeyValueStore
from .store import now_ms

logger = get_logger(__name__)

RECENT_COLORS_KEY = "artifact-studio-recent-colors"
CUSTOM_COLORS_KEY = "artifact-studio-custom-colors"
GRADIENT_PRESETS_KEY = "artifact-studio-gradient-presets"

MAX_RECENT_COLORS = 50
RECENT_COLORS_LIMIT = 20
MAX_CUSTOM_COLORS = 100

_COLOR = re.compile(r"^\S.{0,127}$")


class ColorHistoryItem(BaseModel):
    color: str
    timestamp: int = Field(default_factory=now_ms)
    type: Literal["solid", "gradient"] = "solid"


class ColorStop(BaseModel):
    id: str
    color: str
    position: float = Field(ge=0.0, le=100.0)
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)


class Gradient(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["linear", "radial"] = "linear"
    angle: float = 0.0
    color_stops: list[ColorStop] = Field(default_factory=list, alias="colorStops")


class GradientPreset(BaseModel):
    id: str = Field(min_length=1)
    name: str
    gradient: Gradient


def _two_stop(id: str, name: str, kind: str, angle: float, start: str, end: str) -> GradientPreset:
    return GradientPreset.model_validate(
        {
            "id": id,
            "name": name,
            "gradient": {
                "type": kind,
                "angle": angle,
                "colorStops": [
                    {"id": "1", "color": start, "position": 0, "opacity": 1},
                    {"id": "2", "color": end, "position": 100, "opacity": 1},
                ],
            },
        }
    )


def default_gradient_presets() -> list[GradientPreset]:
    return [
        _two_stop("sunset", "Sunset", "linear", 45, "#ff7e5f", "#feb47b"),
        _two_stop("ocean", "Ocean", "linear", 180, "#667eea", "#764ba2"),
        _two_stop("forest", "Forest", "linear", 135, "#134e5e", "#71b280"),
        _two_stop("fire", "Fire", "radial", 0, "#ff4e50", "#fc913a"),
    ]


class RecentColors(PersistentList[ColorHistoryItem]):
    store_name = "recent_colors"

    def decode_item(self, raw: Any) -> ColorHistoryItem:
        return ColorHistoryItem.model_validate(raw)

    def encode_item(self, item: ColorHistoryItem) -> Any:
        return item.model_dump(mode="json")


class CustomColors(PersistentList[str]):
    store_name = "custom_colors"

    def decode_item(self, raw: Any) -> str:
        if not isinstance(raw, str):
            raise TypeError(f"Expected a color string, got {type(raw).__name__}")
        return raw

    def encode_item(self, item: str) -> Any:
        return item


class GradientPresets(PersistentList[GradientPreset]):
    store_name = "gradient_presets"

    def decode_item(self, raw: Any) -> GradientPreset:
        return GradientPreset.model_validate(raw)

    def encode_item(self, item: GradientPreset) -> Any:
        return item.model_dump(mode="json", by_alias=True)

    def default_items(self) -> list[GradientPreset]:
        return default_gradient_presets()


class PresetStore:
    """Recent colors, custom swatches and gradient presets."""

    def __init__(self, storage: KeyValueStore) -> None:
        self.recent = RecentColors(storage, RECENT_COLORS_KEY, max_items=MAX_RECENT_COLORS)
        self.custom = CustomColors(storage, CUSTOM_COLORS_KEY, max_items=MAX_CUSTOM_COLORS)
        self.gradients = GradientPresets(storage, GRADIENT_PRESETS_KEY)

    @property
    def warnings(self) -> list[str]:
        return [*self.recent.warnings, *self.custom.warnings, *self.gradients.warnings]

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    # Recent colors

    def recent_colors(self, limit: int = RECENT_COLORS_LIMIT) -> list[ColorHistoryItem]:
        return self.recent.snapshot()[:limit]

    def add_recent_color(self, color: str, type: Literal["solid", "gradient"] = "solid") -> ColorHistoryItem:
        """Move ``color`` to the front, dropping an older duplicate."""
        color = _validate_color(color)
        item = ColorHistoryItem(color=color, type=type)
        remaining = [c for c in self.recent.snapshot() if c.color != color]
        self.recent.set_items([item, *remaining])
        return item

    # Custom colors

    def custom_colors(self) -> list[str]:
        return self.custom.snapshot()

    def add_custom_color(self, color: str) -> bool:
        """Append a swatch; False if already present or the list is full."""
        color = _validate_color(color)
        current = self.custom.snapshot()
        if color in current or len(current) >= MAX_CUSTOM_COLORS:
            return False
        self.custom.set_items([*current, color])
        return True

    def remove_custom_color(self, color: str) -> bool:
        current = self.custom.snapshot()
        if color not in current:
            return False
        self.custom.set_items([c for c in current if c != color])
        return True

    # Gradients

    def gradient_presets(self) -> list[GradientPreset]:
        return self.gradients.snapshot()

    def save_gradient_preset(self, preset: GradientPreset) -> None:
        """Insert or replace by id (replaced presets move to the end)."""
        remaining = [p for p in self.gradients.snapshot() if p.id != preset.id]
        self.gradients.set_items([*remaining, preset])
        logger.info("gradient_preset_saved", id=preset.id)

    def delete_gradient_preset(self, preset_id: str) -> bool:
        current = self.gradients.snapshot()
        remaining = [p for p in current if p.id != preset_id]
        if len(remaining) == len(current):
            return False
        self.gradients.set_items(remaining)
        return True

    def clear_all(self) -> None:
        """Remove every preset key; gradients return to the defaults."""
        for preset_list in (self.recent, self.custom, self.gradients):
            preset_list.reset()


def _validate_color(color: str) -> str:
    color = color.strip()
    if not _COLOR.match(color):
        raise ValueError(f"Invalid color value: {color!r}")
    return color


__all__ = [
    "PresetStore",
    "ColorHistoryItem",
    "ColorStop",
    "Gradient",
    "GradientPreset",
    "default_gradient_presets",
    "RECENT_COLORS_KEY",
    "CUSTOM_COLORS_KEY",
    "GRADIENT_PRESETS_KEY",
]
