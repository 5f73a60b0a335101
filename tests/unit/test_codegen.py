"""Tests for React code emission."""

import pytest

from canvas import ComponentMetadata, create_component, generate_react_code


@pytest.fixture
def forest():
    root = create_component("container", id="root", styles={"padding": 8})
    root.children.append(create_component("text", id="greeting", props={"children": "Hi", "className": "lead"}))
    root.children.append(create_component("input", id="email", props={"placeholder": "Email", "disabled": False}))
    return [root]


@pytest.mark.unit
def test_module_shape(forest):
    code = generate_react_code(forest)

    assert code.startswith("import React, { useState, useEffect } from 'react'")
    assert "export const GeneratedArtifact = () => {" in code
    assert '<div className="generated-artifact">' in code
    assert code.rstrip().endswith("export default GeneratedArtifact")


@pytest.mark.unit
def test_elements_and_attributes(forest):
    code = generate_react_code(forest)

    assert '<div data-component-id="root" style={{"padding":8}}>' in code
    assert '<p data-component-id="greeting" className="lead">' in code
    assert '{"Hi"}' in code
    assert '<input data-component-id="email" placeholder="Email" disabled={false} />' in code


@pytest.mark.unit
def test_internal_props_not_forwarded():
    node = create_component("custom", id="x", props={"tag": "navbar", "rendered": {"hash": "abc"}, "layout": "row"})

    code = generate_react_code([node])

    assert "navbar" not in code
    assert "abc" not in code
    assert '<div data-component-id="x">' in code


@pytest.mark.unit
def test_hidden_nodes_skipped():
    node = create_component("text", id="secret")
    node.metadata = ComponentMetadata(hidden=True)

    assert "secret" not in generate_react_code([node])


@pytest.mark.unit
def test_unsafe_attribute_names_dropped():
    node = create_component("button", id="b", props={"onClick={alert(1)}": "x", "title": "ok"})

    code = generate_react_code([node])

    assert "alert" not in code
    assert 'title="ok"' in code


@pytest.mark.unit
def test_string_props_needing_escapes_use_expressions():
    node = create_component(
        "image", id="pic", props={"alt": 'He said "hi"', "title": "a\\b", "aria-label": "Q&amp;A", "src": "/a.png"}
    )

    code = generate_react_code([node])

    assert 'alt={"He said \\"hi\\""}' in code
    assert 'title={"a\\\\b"}' in code
    assert 'aria-label={"Q&amp;A"}' in code
    assert 'src="/a.png"' in code


@pytest.mark.unit
def test_state_and_data_hooks():
    code = generate_react_code(
        [],
        app_state={"count": 0, "bad name": 1},
        api_data={"users": "https://example.com/users"},
    )

    assert "const [count, setCount] = useState(0);" in code
    assert "bad name" not in code
    assert "const [users, setUsers] = useState(null);" in code
    assert 'fetch("https://example.com/users")' in code
    assert ".then(data => setUsers(data));" in code
