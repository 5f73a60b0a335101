"""Geometry Engine.

Pure functions for selection handles and box transforms. Canvas coordinates
grow right (x) and down (y); angles are degrees, clockwise, with 0 pointing
at 12 o'clock.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

DEFAULT_HANDLE_MARGIN = 4.0
DEFAULT_ROTATION_OFFSET = 10.0


class Direction(str, Enum):
    """Resize handle directions."""

    N = "n"
    S = "s"
    E = "e"
    W = "w"
    NE = "ne"
    NW = "nw"
    SE = "se"
    SW = "sw"

    @property
    def north(self) -> bool:
        return "n" in self.value

    @property
    def south(self) -> bool:
        return "s" in self.value

    @property
    def east(self) -> bool:
        return "e" in self.value

    @property
    def west(self) -> bool:
        return "w" in self.value


@dataclass(frozen=True)
class Box:
    """Axis-aligned bounding box with an optional rotation."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height, self.rotation))


@dataclass(frozen=True)
class HandleAnchor:
    """Placement of a handle relative to its box edges.

    An edge offset is set when the handle is pinned to that edge; ``center_x``
    and ``center_y`` mean the handle is centered on that axis instead.
    """

    top: float | None = None
    bottom: float | None = None
    left: float | None = None
    right: float | None = None
    center_x: bool = False
    center_y: bool = False

    def to_style(self) -> dict[str, Any]:
        """CSS-equivalent style mapping for the handle element."""
        style: dict[str, Any] = {"pointerEvents": "auto"}
        for edge in ("top", "bottom", "left", "right"):
            value = getattr(self, edge)
            if value is not None:
                style[edge] = value

        if self.center_x and self.center_y:
            style.update(top="50%", left="50%", transform="translate(-50%, -50%)")
        elif self.center_x:
            style.update(left="50%", transform="translateX(-50%)")
        elif self.center_y:
            style.update(top="50%", transform="translateY(-50%)")
        return style


def parse_direction(value: str | Direction) -> Direction:
    """Coerce a direction string; raises ValueError for unknown values."""
    return value if isinstance(value, Direction) else Direction(value.lower())


def handle_anchor(direction: str | Direction, margin: float = DEFAULT_HANDLE_MARGIN) -> HandleAnchor:
    """Anchor for one of the eight resize handles."""
    d = parse_direction(direction)
    return HandleAnchor(
        top=-margin if d.north else None,
        bottom=-margin if d.south else None,
        left=-margin if d.west else None,
        right=-margin if d.east else None,
        center_x=not (d.east or d.west),
        center_y=not (d.north or d.south),
    )


def rotation_handle_anchor(offset: float = DEFAULT_ROTATION_OFFSET) -> HandleAnchor:
    """Anchor for the rotation handle: above the top edge, centered."""
    return HandleAnchor(top=-offset, center_x=True)


def handle_position(box: Box, direction: str | Direction, margin: float = DEFAULT_HANDLE_MARGIN) -> tuple[float, float]:
    """Handle center in canvas coordinates (ignores box rotation)."""
    d = parse_direction(direction)
    cx, cy = box.center

    if d.west:
        x = box.x - margin
    elif d.east:
        x = box.right + margin
    else:
        x = cx

    if d.north:
        y = box.y - margin
    elif d.south:
        y = box.bottom + margin
    else:
        y = cy
    return (x, y)


def rotation_handle_position(box: Box, offset: float = DEFAULT_ROTATION_OFFSET) -> tuple[float, float]:
    return (box.center[0], box.y - offset)


def all_handles(box: Box, margin: float = DEFAULT_HANDLE_MARGIN) -> dict[str, tuple[float, float]]:
    """Positions for every resize handle plus ``"rotate"``."""
    handles = {d.value: handle_position(box, d, margin) for d in Direction}
    handles["rotate"] = rotation_handle_position(box)
    return handles


def cursor_for(direction: str | Direction) -> str:
    """CSS cursor shown while hovering a resize handle."""
    return f"{parse_direction(direction).value}-resize"


def normalize_angle(angle: float) -> float:
    """Map any angle into [0, 360)."""
    normalized = math.fmod(angle, 360.0)
    if normalized < 0:
        normalized += 360.0
    # fmod of a tiny negative value can round up to exactly 360
    return 0.0 if normalized >= 360.0 else normalized


def snap_to_grid(value: float, grid_size: float) -> float:
    if grid_size <= 0:
        return value
    return round(value / grid_size) * grid_size


def move_box(box: Box, dx: float, dy: float, grid_size: float | None = None) -> Box:
    x, y = box.x + dx, box.y + dy
    if grid_size:
        x, y = snap_to_grid(x, grid_size), snap_to_grid(y, grid_size)
    return replace(box, x=x, y=y)


def resize_box(box: Box, direction: str | Direction, dx: float, dy: float, min_size: float = 0.0) -> Box:
    """
    Apply a drag vector to a box through the given handle.

    The edge opposite the dragged handle stays pinned. Width and height never
    drop below ``min_size`` (itself clamped to zero), so a box cannot invert.
    """
    d = parse_direction(direction)
    floor = max(min_size, 0.0)
    x, y, width, height = box.x, box.y, box.width, box.height

    if d.east:
        width = max(floor, box.width + dx)
    elif d.west:
        width = max(floor, box.width - dx)
        x = box.right - width

    if d.south:
        height = max(floor, box.height + dy)
    elif d.north:
        height = max(floor, box.height - dy)
        y = box.bottom - height

    return replace(box, x=x, y=y, width=width, height=height)


def rotation_from_pointer(box: Box, pointer_x: float, pointer_y: float) -> float:
    """
    Rotation that points the rotation handle at the pointer.

    Always measured around the box center.
    """
    cx, cy = box.center
    if pointer_x == cx and pointer_y == cy:
        return normalize_angle(box.rotation)
    angle = math.degrees(math.atan2(pointer_y - cy, pointer_x - cx)) + 90.0
    return normalize_angle(angle)


def rotate_box(box: Box, angle: float) -> Box:
    """Set an absolute rotation (normalized)."""
    return replace(box, rotation=normalize_angle(angle))
