"""React code emission for the component tree.

The emitted module is what the sandbox renders; it is plain data-driven JSX,
no user code is spliced in unescaped.
"""

import re
from typing import Any

from core.json import dumps

from .models import ComponentNode, ComponentType, Forest

ELEMENT_MAP: dict[ComponentType, str] = {
    ComponentType.CONTAINER: "div",
    ComponentType.TEXT: "p",
    ComponentType.BUTTON: "button",
    ComponentType.INPUT: "input",
    ComponentType.IMAGE: "img",
}

SELF_CLOSING = {"input", "img"}

# Props consumed by the editor, never forwarded to the element
INTERNAL_PROPS = {"children", "tag", "layout", "rendered"}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$-]*$")
_STATE_NAME = re.compile(r"^[A-Za-z_$][\w$]*$")


def _state_name(key: str) -> str:
    return key[:1].upper() + key[1:]


def _string_attribute(key: str, value: str) -> str:
    literal = dumps(value)
    # JSX string attributes take no backslash escapes and decode HTML entities
    if literal[1:-1] == value and "&" not in value:
        return f"{key}={literal}"
    return f"{key}={{{literal}}}"


def _attribute(key: str, value: Any) -> str | None:
    if value is None or not _IDENTIFIER.match(key):
        return None
    if isinstance(value, str):
        return _string_attribute(key, value)
    return f"{key}={{{dumps(value)}}}"


def render_node(node: ComponentNode, indent: int = 0) -> str:
    """JSX for one node and its subtree."""
    if node.metadata and node.metadata.hidden:
        return ""

    spaces = "  " * indent
    element = ELEMENT_MAP.get(node.type, "div")

    attributes = [_string_attribute("data-component-id", node.id)]
    for key, value in node.props.items():
        if key in INTERNAL_PROPS:
            continue
        if attr := _attribute(key, value):
            attributes.append(attr)
    if node.styles:
        attributes.append(f"style={{{dumps(node.styles)}}}")

    attrs = " ".join(attributes)
    if element in SELF_CLOSING:
        return f"{spaces}<{element} {attrs} />"

    lines = [f"{spaces}<{element} {attrs}>"]
    text = node.props.get("children")
    if isinstance(text, (str, int, float)) and not isinstance(text, bool):
        lines.append(f"{spaces}  {{{dumps(str(text))}}}")
    for child in node.children:
        if child_code := render_node(child, indent + 1):
            lines.append(child_code)
    lines.append(f"{spaces}</{element}>")
    return "\n".join(lines)


def generate_react_code(
    components: Forest,
    app_state: dict[str, Any] | None = None,
    api_data: dict[str, str] | None = None,
) -> str:
    """
    Emit a React module exporting ``GeneratedArtifact``.

    Args:
        components: Forest to render
        app_state: ``useState`` initial values keyed by state name
        api_data: state name -> URL fetched once on mount
    """
    hooks: list[str] = []
    for key, value in (app_state or {}).items():
        if not _STATE_NAME.match(key):
            continue
        hooks.append(f"const [{key}, set{_state_name(key)}] = useState({dumps(value)});")
    for key, url in (api_data or {}).items():
        if not _STATE_NAME.match(key):
            continue
        setter = f"set{_state_name(key)}"
        hooks.append(
            f"const [{key}, {setter}] = useState(null);\n"
            f"  useEffect(() => {{\n"
            f"    fetch({dumps(url)})\n"
            f"      .then(res => res.json())\n"
            f"      .then(data => {setter}(data));\n"
            f"  }}, []);"
        )

    body = "\n".join(code for node in components if (code := render_node(node, 3)))
    hook_block = "\n  ".join(hooks)

    return (
        "import React, { useState, useEffect } from 'react'\n"
        "\n"
        "export const GeneratedArtifact = () => {\n"
        f"  {hook_block}\n"
        "\n"
        "  return (\n"
        '    <div className="generated-artifact">\n'
        f"{body}\n"
        "    </div>\n"
        "  )\n"
        "}\n"
        "\n"
        "export default GeneratedArtifact\n"
    )
