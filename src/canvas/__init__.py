"""Canvas: component model, geometry engine and tree store."""

from .errors import (
    TreeError,
    NodeNotFoundError,
    DuplicateNodeError,
    LockedNodeError,
    InvalidEditError,
    GenerationPayloadError,
    SnapshotFormatError,
)
from .geometry import (
    Box,
    Direction,
    HandleAnchor,
    handle_anchor,
    rotation_handle_anchor,
    handle_position,
    all_handles,
    cursor_for,
    normalize_angle,
    snap_to_grid,
    move_box,
    resize_box,
    rotate_box,
    rotation_from_pointer,
)
from .models import (
    ComponentType,
    ComponentNode,
    ComponentMetadata,
    Position,
    Size,
    Skew,
    Forest,
    create_component,
    iter_nodes,
    find_node,
    clone_forest,
)
from .ingest import build_component_tree
from .codegen import generate_react_code
from .store import ComponentTreeStore, parse_snapshot

__all__ = [
    # Errors
    "TreeError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "LockedNodeError",
    "InvalidEditError",
    "GenerationPayloadError",
    "SnapshotFormatError",
    # Geometry
    "Box",
    "Direction",
    "HandleAnchor",
    "handle_anchor",
    "rotation_handle_anchor",
    "handle_position",
    "all_handles",
    "cursor_for",
    "normalize_angle",
    "snap_to_grid",
    "move_box",
    "resize_box",
    "rotate_box",
    "rotation_from_pointer",
    # Models
    "ComponentType",
    "ComponentNode",
    "ComponentMetadata",
    "Position",
    "Size",
    "Skew",
    "Forest",
    "create_component",
    "iter_nodes",
    "find_node",
    "clone_forest",
    # Ingest / codegen
    "build_component_tree",
    "generate_react_code",
    # Store
    "ComponentTreeStore",
    "parse_snapshot",
]
