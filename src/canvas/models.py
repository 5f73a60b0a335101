"""Component Tree Models."""

from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, JsonValue, TypeAdapter, field_validator

from core.id import new_component_id

from .errors import DuplicateNodeError
from .geometry import Box, normalize_angle


class ComponentType(str, Enum):
    """Polymorphic component kinds."""

    CONTAINER = "container"
    TEXT = "text"
    BUTTON = "button"
    INPUT = "input"
    IMAGE = "image"
    CHART = "chart"
    CUSTOM = "custom"


class Position(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    width: float = Field(default=100.0, ge=0.0)
    height: float = Field(default=50.0, ge=0.0)


class Skew(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComponentMetadata(BaseModel):
    """Authoring metadata carried by a node."""

    version: str = "1.0.0"
    created: datetime = Field(default_factory=_utcnow)
    modified: datetime = Field(default_factory=_utcnow)
    author: str = "system"
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    locked: bool = False
    hidden: bool = False


class ComponentNode(BaseModel):
    """A positioned, styled element of the document tree.

    Children are owned exclusively by their parent; parent links are never
    stored (see ``find_parent``).
    """

    model_config = ConfigDict(validate_assignment=True, allow_inf_nan=False)

    id: str = Field(default_factory=new_component_id, min_length=1)
    type: ComponentType
    props: dict[str, JsonValue] = Field(default_factory=dict)
    styles: dict[str, JsonValue] = Field(default_factory=dict)
    children: list["ComponentNode"] = Field(default_factory=list)
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    rotation: float = 0.0
    skew: Skew = Field(default_factory=Skew)
    metadata: ComponentMetadata | None = None

    @field_validator("rotation")
    @classmethod
    def normalize_rotation(cls, v: float) -> float:
        return normalize_angle(v)

    @property
    def locked(self) -> bool:
        return bool(self.metadata and self.metadata.locked)

    def box(self) -> Box:
        return Box(
            x=self.position.x,
            y=self.position.y,
            width=self.size.width,
            height=self.size.height,
            rotation=self.rotation,
        )

    def with_box(self, box: Box) -> "ComponentNode":
        """Copy with geometry taken from ``box``; bumps ``metadata.modified``."""
        update: dict = {
            "position": Position(x=box.x, y=box.y),
            "size": Size(width=max(box.width, 0.0), height=max(box.height, 0.0)),
            "rotation": normalize_angle(box.rotation),
        }
        if self.metadata is not None:
            update["metadata"] = self.metadata.model_copy(update={"modified": _utcnow()})
        return self.model_copy(update=update)


ComponentNode.model_rebuild()

Forest = list[ComponentNode]

forest_adapter: TypeAdapter[list[ComponentNode]] = TypeAdapter(list[ComponentNode])


def create_component(
    type: ComponentType | str,
    *,
    id: str | None = None,
    props: dict[str, JsonValue] | None = None,
    styles: dict[str, JsonValue] | None = None,
    x: float = 0.0,
    y: float = 0.0,
    width: float = 100.0,
    height: float = 50.0,
    with_metadata: bool = True,
) -> ComponentNode:
    """Factory mirroring the editor's defaults (100x50 at the origin)."""
    return ComponentNode(
        id=id or new_component_id(),
        type=ComponentType(type),
        props=props or {},
        styles=styles or {},
        position=Position(x=x, y=y),
        size=Size(width=width, height=height),
        metadata=ComponentMetadata() if with_metadata else None,
    )


def iter_nodes(forest: Forest) -> Iterator[ComponentNode]:
    """Depth-first, pre-order walk over every node."""
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(forest: Forest, node_id: str) -> ComponentNode | None:
    return next((n for n in iter_nodes(forest) if n.id == node_id), None)


def find_parent(forest: Forest, node_id: str) -> ComponentNode | None:
    """Derived parent lookup; None for roots and unknown ids."""
    for node in iter_nodes(forest):
        if any(child.id == node_id for child in node.children):
            return node
    return None


def tree_depth(forest: Forest) -> int:
    """Depth of the deepest node (a lone root has depth 0, empty forest -1)."""

    def depth(node: ComponentNode) -> int:
        return 1 + max((depth(c) for c in node.children), default=-1)

    return max((depth(n) for n in forest), default=-1)


def ensure_unique_ids(forest: Forest) -> None:
    """
    Raises:
        DuplicateNodeError: If any id appears twice
    """
    seen: set[str] = set()
    for node in iter_nodes(forest):
        if node.id in seen:
            raise DuplicateNodeError(node.id)
        seen.add(node.id)


def clone_forest(forest: Forest) -> Forest:
    """Deep, independent copy."""
    return [node.model_copy(deep=True) for node in forest]
