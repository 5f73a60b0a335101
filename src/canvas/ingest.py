"""Generation payload ingest.

Turns a provider reply of the form::

    {
      "components": [{"type": "container", "id": "root", "children": ["title"]}],
      "layout": {"root": {"styles": {...}, "children": [...]}},
      "componentDetails": {"title": {"type": "text", "content": "Hi", "props": {...}}}
    }

into a component forest.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError
from returns.result import Failure, Result, Success

from core import get_logger
from core.validate import validate_generation_payload

from .errors import GenerationPayloadError
from .models import ComponentNode, ComponentType, Forest, Position, Size

logger = get_logger(__name__)

_KNOWN_TYPES = {t.value for t in ComponentType}

# Nesting limit for ingested trees; each level is two JSON levels once serialized
MAX_TREE_DEPTH = 64


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _child_ids(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [c for c in value if isinstance(c, str)]


def _resolve_type(raw: Any) -> tuple[ComponentType, str | None]:
    """Known type, or CUSTOM plus the original tag."""
    if isinstance(raw, str) and raw in _KNOWN_TYPES:
        return ComponentType(raw), None
    if isinstance(raw, str) and raw:
        return ComponentType.CUSTOM, raw
    return ComponentType.CONTAINER, None


def build_component_tree(payload: Any) -> Result[Forest, GenerationPayloadError]:
    """
    Build a forest from a generation payload.

    Every id mentioned in ``componentDetails``, ``layout`` or ``components``
    becomes a node. Parent links come from ``layout[id].children`` and
    ``components[i].children``; a child is attached to the first parent that
    claims it, and links that would close a cycle or reference unknown ids
    are dropped. Unclaimed nodes become roots, in first-seen order. Trees
    deeper than ``MAX_TREE_DEPTH`` are rejected.
    """
    validated = validate_generation_payload(payload)
    if isinstance(validated, Failure):
        return Failure(GenerationPayloadError(validated.failure().message))

    layout: dict[str, Any] = payload["layout"]
    details: dict[str, Any] = payload["componentDetails"]
    entries = [_as_dict(e) for e in payload.get("components", [])]
    entry_by_id = {e["id"]: e for e in entries if isinstance(e.get("id"), str)}

    order: list[str] = []
    for source in (entry_by_id.keys(), layout.keys(), details.keys()):
        for node_id in source:
            if node_id not in order:
                order.append(node_id)

    parent_of: dict[str, str] = {}
    children_of: dict[str, list[str]] = {node_id: [] for node_id in order}

    def is_ancestor(candidate: str, node_id: str) -> bool:
        current: str | None = node_id
        while current is not None:
            if current == candidate:
                return True
            current = parent_of.get(current)
        return False

    for parent_id in order:
        claimed = _child_ids(_as_dict(layout.get(parent_id)).get("children"))
        claimed += _child_ids(_as_dict(entry_by_id.get(parent_id)).get("children"))
        for child_id in claimed:
            if child_id not in children_of:
                logger.warning("ingest_unknown_child", parent=parent_id, child=child_id)
                continue
            if child_id in parent_of or is_ancestor(child_id, parent_id):
                logger.warning("ingest_link_dropped", parent=parent_id, child=child_id)
                continue
            parent_of[child_id] = parent_id
            children_of[parent_id].append(child_id)

    roots = [node_id for node_id in order if node_id not in parent_of]
    depth = dict.fromkeys(roots, 1)
    queue = list(roots)
    for node_id in queue:
        for child_id in children_of[node_id]:
            depth[child_id] = depth[node_id] + 1
            if depth[child_id] > MAX_TREE_DEPTH:
                return Failure(GenerationPayloadError(f"Component tree is deeper than {MAX_TREE_DEPTH} levels"))
            queue.append(child_id)

    def build(node_id: str) -> ComponentNode:
        detail = _as_dict(details.get(node_id))
        layout_info = _as_dict(layout.get(node_id))
        entry = _as_dict(entry_by_id.get(node_id))

        node_type, tag = _resolve_type(detail.get("type") or layout_info.get("type") or entry.get("type"))
        props = dict(_as_dict(detail.get("props")))
        if detail.get("content") is not None:
            props["children"] = detail["content"]
        if tag:
            props["tag"] = tag
        if isinstance(layout_info.get("layout"), str):
            props.setdefault("layout", layout_info["layout"])

        return ComponentNode(
            id=node_id,
            type=node_type,
            props=props,
            styles=_as_dict(layout_info.get("styles")),
            children=[build(child_id) for child_id in children_of[node_id]],
            position=Position(**_as_dict(layout_info.get("position"))),
            size=Size(**(_as_dict(layout_info.get("size")) or {"width": 0.0, "height": 0.0})),
        )

    try:
        forest = [build(node_id) for node_id in roots]
    except (PydanticValidationError, TypeError) as e:
        return Failure(GenerationPayloadError(f"Invalid component in payload: {e}"))

    logger.info("ingest_complete", nodes=len(order), roots=len(forest))
    return Success(forest)
