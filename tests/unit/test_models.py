"""Tests for component models."""

import pytest
from pydantic import ValidationError

from canvas import Box, ComponentNode, ComponentType, DuplicateNodeError, create_component, find_node, iter_nodes
from canvas.models import ensure_unique_ids, find_parent, tree_depth


@pytest.fixture
def forest():
    root = create_component("container", id="root")
    child = create_component("button", id="child")
    child.children.append(create_component("text", id="leaf"))
    root.children.append(child)
    return [root, create_component("image", id="other")]


@pytest.mark.unit
def test_create_component_defaults():
    node = create_component("text")

    assert node.id.startswith("cmp_")
    assert node.type is ComponentType.TEXT
    assert (node.size.width, node.size.height) == (100, 50)
    assert node.metadata is not None and not node.metadata.locked


@pytest.mark.unit
def test_rotation_normalized_on_construction():
    node = ComponentNode(type="text", rotation=-30)
    assert node.rotation == pytest.approx(330)


@pytest.mark.unit
def test_negative_size_rejected():
    with pytest.raises(ValidationError):
        ComponentNode(type="text", size={"width": -1, "height": 10})


@pytest.mark.unit
def test_props_accept_nested_json_values():
    node = ComponentNode(type="chart", props={"series": [1, 2.5, None, {"label": "a", "on": True}]})
    assert node.props["series"][3] == {"label": "a", "on": True}


@pytest.mark.unit
def test_props_reject_non_json_values():
    with pytest.raises(ValidationError):
        ComponentNode(type="text", props={"bad": object()})


@pytest.mark.unit
def test_iter_nodes_is_preorder(forest):
    assert [n.id for n in iter_nodes(forest)] == ["root", "child", "leaf", "other"]


@pytest.mark.unit
def test_find_node_and_parent(forest):
    assert find_node(forest, "leaf").type is ComponentType.TEXT
    assert find_node(forest, "missing") is None
    assert find_parent(forest, "leaf").id == "child"
    assert find_parent(forest, "root") is None


@pytest.mark.unit
def test_tree_depth(forest):
    assert tree_depth(forest) == 2
    assert tree_depth([]) == -1


@pytest.mark.unit
def test_duplicate_ids_detected(forest):
    forest[1] = create_component("text", id="leaf")

    with pytest.raises(DuplicateNodeError) as exc:
        ensure_unique_ids(forest)
    assert exc.value.node_id == "leaf"


@pytest.mark.unit
def test_with_box_bumps_modified(forest):
    node = forest[1]
    before = node.metadata.modified

    moved = node.with_box(Box(x=5, y=6, width=7, height=8, rotation=400))

    assert (moved.position.x, moved.position.y) == (5, 6)
    assert moved.rotation == pytest.approx(40)
    assert moved.metadata.modified >= before
    assert node.position.x == 0
