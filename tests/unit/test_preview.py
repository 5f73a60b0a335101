"""Tests for preview document building."""

import pytest

from canvas import create_component, generate_react_code
from sandbox.preview import build_preview, find_entry_component, prepare_module


@pytest.mark.unit
@pytest.mark.parametrize(
    "code,expected",
    [
        ("const Card = () => null\nexport default Card", "Card"),
        ("export default function Page() { return null }", "Page"),
        ("function helper() {}\nconst Widget = () => null", "Widget"),
        ("const lower = 1", None),
    ],
)
def test_find_entry_component(code, expected):
    assert find_entry_component(code) == expected


@pytest.mark.unit
def test_prepare_module_strips_module_syntax():
    code = "import React from 'react'\nexport const A = () => null\nexport default A\n"

    prepared = prepare_module(code)

    assert "import" not in prepared
    assert "export" not in prepared
    assert "const A = () => null" in prepared


@pytest.mark.unit
def test_generated_code_mounts_artifact():
    code = generate_react_code([create_component("text", id="t", props={"children": "Hi"})])

    page = build_preview(code)

    assert "React.createElement(GeneratedArtifact)" in page
    assert "Content-Security-Policy" in page
    assert "react-dom@18" in page
    assert "export default" not in page


@pytest.mark.unit
def test_script_close_tag_escaped():
    page = build_preview("const App = () => '</script><script>alert(1)</script>'")

    assert "</script><script>alert(1)" not in page
    assert "<\\/script>" in page


@pytest.mark.unit
def test_other_frameworks_show_escaped_source():
    page = build_preview("<template><p>{{ x }}</p></template>", framework="vue", title="<Vue>")

    assert '<pre class="preview-source" data-framework="vue">' in page
    assert "&lt;template&gt;" in page
    assert "<title>&lt;Vue&gt;</title>" in page
    assert "unpkg.com/react" not in page.split("<body>")[1]
