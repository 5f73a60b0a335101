"""Component Tree Store.

Owns the canonical component forest. Every mutation runs under one lock and
swaps in a new forest value built by path copying, so a reader holding the
previous value never observes a half-applied edit.
"""

import math
import threading
from collections.abc import Callable, Iterator
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from returns.result import Failure, Result, Success

from core import get_logger
from monitoring import metrics_collector

from .errors import (
    DuplicateNodeError,
    InvalidEditError,
    LockedNodeError,
    NodeNotFoundError,
    SnapshotFormatError,
    TreeError,
)
from .geometry import (
    Box,
    move_box,
    parse_direction,
    resize_box,
    rotate_box,
    rotation_from_pointer,
)
from .ingest import build_component_tree
from .models import (
    ComponentNode,
    Forest,
    clone_forest,
    ensure_unique_ids,
    find_node,
    find_parent,
    forest_adapter,
    iter_nodes,
    tree_depth,
)

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1
DEFAULT_GRID_SIZE = 20.0

Listener = Callable[[Forest], None]

# Fields merged key-wise rather than replaced
_MERGED_FIELDS = ("props", "styles")


def _map_node(forest: Forest, node_id: str, fn: Callable[[ComponentNode], ComponentNode]) -> Forest | None:
    """New forest with ``fn`` applied to the matching node, or None if absent."""
    for i, node in enumerate(forest):
        if node.id == node_id:
            return [*forest[:i], fn(node), *forest[i + 1:]]
        children = _map_node(node.children, node_id, fn)
        if children is not None:
            return [*forest[:i], node.model_copy(update={"children": children}), *forest[i + 1:]]
    return None


def _remove_node(forest: Forest, node_id: str) -> tuple[Forest, ComponentNode] | None:
    for i, node in enumerate(forest):
        if node.id == node_id:
            return [*forest[:i], *forest[i + 1:]], node
        removed = _remove_node(node.children, node_id)
        if removed is not None:
            children, target = removed
            return [*forest[:i], node.model_copy(update={"children": children}), *forest[i + 1:]], target
    return None


def _insert(siblings: Forest, node: ComponentNode, index: int | None) -> Forest:
    if index is None:
        return [*siblings, node]
    return [*siblings[:index], node, *siblings[index:]]


class ComponentTreeStore:
    """
    Mutable owner of the component forest.

    Lookups and mutations return ``Result`` values; tree errors are never
    raised from store operations.

    Examples:
        >>> store = ComponentTreeStore()
        >>> store.add(create_component("text", id="title"))
        >>> store.move("title", 10, 5)
    """

    def __init__(
        self,
        components: Forest | None = None,
        *,
        snap_to_grid: bool = False,
        grid_size: float = DEFAULT_GRID_SIZE,
        min_size: float = 0.0,
    ) -> None:
        """
        Args:
            components: Initial forest (copied)
            snap_to_grid: Snap positions after a move
            grid_size: Grid spacing used when snapping
            min_size: Floor for width and height during resize

        Raises:
            DuplicateNodeError: If the initial forest repeats an id
        """
        forest = clone_forest(components or [])
        ensure_unique_ids(forest)

        self.snap_to_grid = snap_to_grid
        self.grid_size = grid_size
        self.min_size = max(min_size, 0.0)

        self._forest: Forest = forest
        self._revision = 0
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def components(self) -> Forest:
        """Deep copy of the current forest."""
        return clone_forest(self._forest)

    @property
    def revision(self) -> int:
        """Incremented on every committed mutation."""
        return self._revision

    def get(self, node_id: str) -> Result[ComponentNode, NodeNotFoundError]:
        node = find_node(self._forest, node_id)
        if node is None:
            return Failure(NodeNotFoundError(node_id))
        return Success(node.model_copy(deep=True))

    def find_parent(self, node_id: str) -> ComponentNode | None:
        parent = find_parent(self._forest, node_id)
        return parent.model_copy(deep=True) if parent is not None else None

    def walk(self) -> Iterator[ComponentNode]:
        """Pre-order walk over a consistent view of the forest."""
        return iter_nodes(self.components)

    def ids(self) -> list[str]:
        return [node.id for node in iter_nodes(self._forest)]

    def depth(self) -> int:
        return tree_depth(self._forest)

    def __len__(self) -> int:
        return sum(1 for _ in iter_nodes(self._forest))

    def __contains__(self, node_id: object) -> bool:
        return isinstance(node_id, str) and find_node(self._forest, node_id) is not None

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, forest: Forest, operation: str) -> Forest:
        with self._lock:
            self._forest = forest
            self._revision += 1
            revision = self._revision

        metrics_collector.record_tree_mutation(operation, "success")
        logger.debug("tree_mutation", operation=operation, revision=revision)

        for listener in list(self._listeners):
            try:
                listener(clone_forest(forest))
            except Exception as e:
                logger.error("tree_listener_failed", operation=operation, error=str(e))
        return clone_forest(forest)

    def _reject(self, operation: str, error: TreeError) -> Failure:
        metrics_collector.record_tree_mutation(operation, type(error).__name__)
        logger.debug("tree_mutation_rejected", operation=operation, error=str(error))
        return Failure(error)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update(self, node_id: str, partial: dict[str, Any]) -> Result[Forest, TreeError]:
        """
        Merge ``partial`` into a node.

        Top-level fields are replaced; ``props`` and ``styles`` are merged key
        by key. Geometry written through here bypasses the lock check; use
        ``move``/``resize``/``rotate`` for user edits.
        """
        with self._lock:
            node = find_node(self._forest, node_id)
            if node is None:
                return self._reject("update", NodeNotFoundError(node_id))

            merged = node.model_dump()
            for key, value in partial.items():
                if key in _MERGED_FIELDS and isinstance(value, dict):
                    merged[key] = {**merged.get(key, {}), **value}
                else:
                    merged[key] = value

            try:
                updated = ComponentNode.model_validate(merged)
            except PydanticValidationError as e:
                return self._reject("update", InvalidEditError(f"Invalid update for {node_id}: {e}"))

            forest = _map_node(self._forest, node_id, lambda _: updated)
            assert forest is not None
            try:
                ensure_unique_ids(forest)
            except DuplicateNodeError as e:
                return self._reject("update", e)

            return Success(self._commit(forest, "update"))

    def add(
        self,
        node: ComponentNode,
        parent_id: str | None = None,
        index: int | None = None,
    ) -> Result[Forest, TreeError]:
        """Insert ``node`` (and its subtree) at the root or under ``parent_id``."""
        node = node.model_copy(deep=True)
        with self._lock:
            existing = set(self.ids())
            for candidate in iter_nodes([node]):
                if candidate.id in existing:
                    return self._reject("add", DuplicateNodeError(candidate.id))
            try:
                ensure_unique_ids([node])
            except DuplicateNodeError as e:
                return self._reject("add", e)

            if parent_id is None:
                forest = _insert(self._forest, node, index)
            else:
                forest = _map_node(
                    self._forest,
                    parent_id,
                    lambda parent: parent.model_copy(update={"children": _insert(parent.children, node, index)}),
                )
                if forest is None:
                    return self._reject("add", NodeNotFoundError(parent_id))

            return Success(self._commit(forest, "add"))

    def remove(self, node_id: str) -> Result[ComponentNode, NodeNotFoundError]:
        """Detach a node with its subtree; returns the removed node."""
        with self._lock:
            removed = _remove_node(self._forest, node_id)
            if removed is None:
                return self._reject("remove", NodeNotFoundError(node_id))
            forest, node = removed
            self._commit(forest, "remove")
            return Success(node.model_copy(deep=True))

    def replace(self, components: Forest) -> Result[Forest, DuplicateNodeError]:
        """Swap in a whole new forest (restore, generation, load)."""
        forest = clone_forest(components)
        try:
            ensure_unique_ids(forest)
        except DuplicateNodeError as e:
            return self._reject("replace", e)
        return Success(self._commit(forest, "replace"))

    def clear(self) -> Forest:
        return self._commit([], "clear")

    # ------------------------------------------------------------------
    # Geometry edits
    # ------------------------------------------------------------------

    def _edit_box(
        self,
        node_id: str,
        operation: str,
        transform: Callable[[Box], Box],
        inputs: tuple[float, ...] = (),
    ) -> Result[ComponentNode, TreeError]:
        if not all(math.isfinite(v) for v in inputs):
            return self._reject(operation, InvalidEditError(f"Non-finite {operation} input for {node_id}"))
        with self._lock:
            node = find_node(self._forest, node_id)
            if node is None:
                return self._reject(operation, NodeNotFoundError(node_id))
            if node.locked:
                return self._reject(operation, LockedNodeError(node_id))

            try:
                box = transform(node.box())
            except (ValueError, OverflowError) as e:
                return self._reject(operation, InvalidEditError(f"Invalid {operation} of {node_id}: {e}"))
            if not box.is_finite:
                return self._reject(operation, InvalidEditError(f"{operation} of {node_id} leaves non-finite geometry"))
            edited = node.with_box(box)
            forest = _map_node(self._forest, node_id, lambda _: edited)
            assert forest is not None
            self._commit(forest, operation)
            return Success(edited.model_copy(deep=True))

    def move(self, node_id: str, dx: float, dy: float) -> Result[ComponentNode, TreeError]:
        grid = self.grid_size if self.snap_to_grid else None
        return self._edit_box(node_id, "move", lambda box: move_box(box, dx, dy, grid), (dx, dy))

    def move_to(self, node_id: str, x: float, y: float) -> Result[ComponentNode, TreeError]:
        """Absolute placement; goes through the same snapping as ``move``."""
        grid = self.grid_size if self.snap_to_grid else None
        return self._edit_box(node_id, "move", lambda box: move_box(box, x - box.x, y - box.y, grid), (x, y))

    def resize(self, node_id: str, direction: str, dx: float, dy: float) -> Result[ComponentNode, TreeError]:
        try:
            handle = parse_direction(direction)
        except ValueError:
            return self._reject("resize", InvalidEditError(f"Unknown resize direction: {direction}"))
        return self._edit_box(node_id, "resize", lambda box: resize_box(box, handle, dx, dy, self.min_size), (dx, dy))

    def rotate(self, node_id: str, delta: float) -> Result[ComponentNode, TreeError]:
        """Rotate by ``delta`` degrees relative to the current rotation."""
        return self._edit_box(node_id, "rotate", lambda box: rotate_box(box, box.rotation + delta), (delta,))

    def rotate_to(self, node_id: str, angle: float) -> Result[ComponentNode, TreeError]:
        return self._edit_box(node_id, "rotate", lambda box: rotate_box(box, angle), (angle,))

    def rotate_towards(self, node_id: str, pointer_x: float, pointer_y: float) -> Result[ComponentNode, TreeError]:
        """Rotation drag: point the rotation handle at the pointer."""
        return self._edit_box(
            node_id,
            "rotate",
            lambda box: rotate_box(box, rotation_from_pointer(box, pointer_x, pointer_y)),
            (pointer_x, pointer_y),
        )

    # ------------------------------------------------------------------
    # Generation and serialization
    # ------------------------------------------------------------------

    def ingest_generation(self, payload: Any, *, append: bool = False) -> Result[Forest, TreeError]:
        """Build nodes from a generation payload and install them."""
        built = build_component_tree(payload)
        if isinstance(built, Failure):
            return self._reject("ingest", built.failure())

        generated = built.unwrap()
        if not append:
            return self.replace(generated)

        with self._lock:
            forest = [*self._forest, *generated]
            try:
                ensure_unique_ids(forest)
            except DuplicateNodeError as e:
                return self._reject("ingest", e)
            return Success(self._commit(forest, "ingest"))

    def serialize(self) -> dict[str, Any]:
        """Snapshot document; ``deserialize`` restores it exactly."""
        return {
            "version": SNAPSHOT_VERSION,
            "components": forest_adapter.dump_python(self._forest, mode="json"),
        }

    def load(self, snapshot: Any) -> Result[Forest, TreeError]:
        """Replace the forest with the contents of a serialized snapshot."""
        try:
            forest = parse_snapshot(snapshot)
        except SnapshotFormatError as e:
            return self._reject("load", e)
        return self.replace(forest)

    @classmethod
    def deserialize(cls, snapshot: Any, **kwargs: Any) -> "ComponentTreeStore":
        """
        Build a store from a serialized snapshot.

        Raises:
            SnapshotFormatError: If the document is malformed
            DuplicateNodeError: If the document repeats an id
        """
        return cls(parse_snapshot(snapshot), **kwargs)


def parse_snapshot(snapshot: Any) -> Forest:
    """
    Raises:
        SnapshotFormatError: If ``snapshot`` is not a version 1 document
    """
    if not isinstance(snapshot, dict):
        raise SnapshotFormatError("Snapshot must be an object")
    if snapshot.get("version") != SNAPSHOT_VERSION:
        raise SnapshotFormatError(f"Unsupported snapshot version: {snapshot.get('version')!r}")
    try:
        return forest_adapter.validate_python(snapshot.get("components"))
    except PydanticValidationError as e:
        raise SnapshotFormatError(f"Invalid components: {e.error_count()} errors") from e
