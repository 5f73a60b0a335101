"""
Preview Document Builder

Wraps component code into a standalone HTML page. React code is compiled in
the page by Babel standalone against the UMD React build, so the page needs
no build step. The page carries a restrictive CSP and never runs on the host.
"""

import html
import re

REACT_SCRIPTS = (
    '<script crossorigin src="https://unpkg.com/react@18/umd/react.production.min.js"></script>\n'
    '<script crossorigin src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>\n'
    '<script crossorigin src="https://unpkg.com/@babel/standalone/babel.min.js"></script>'
)

CONTENT_SECURITY_POLICY = (
    "default-src 'none'; "
    "script-src https://unpkg.com 'unsafe-inline' 'unsafe-eval'; "
    "style-src 'unsafe-inline' https:; "
    "img-src * data:; "
    "font-src https: data:; "
    "connect-src https:"
)

PREVIEW_CSS = """
* { box-sizing: border-box; }
body { margin: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; }
#root { min-height: 100vh; }
.preview-error { color: #b91c1c; padding: 16px; white-space: pre-wrap; font-family: monospace; }
pre.preview-source { margin: 0; padding: 16px; white-space: pre-wrap; }
"""

_IMPORT_LINE = re.compile(r"^\s*import\s.*?$", re.MULTILINE)
_EXPORT_DEFAULT_NAME = re.compile(r"^\s*export\s+default\s+([A-Za-z_$][\w$]*)\s*;?\s*$", re.MULTILINE)
_EXPORT_DEFAULT_DECL = re.compile(r"\bexport\s+default\s+(?=function|class)")
_EXPORT = re.compile(r"\bexport\s+(?=const|let|var|function|class)")
_COMPONENT_DECL = re.compile(r"\b(?:const|let|var|function|class)\s+([A-Z][\w$]*)")
_DEFAULT_DECL_NAME = re.compile(r"\bexport\s+default\s+(?:function|class)\s+([A-Za-z_$][\w$]*)")


def _escape_script(code: str) -> str:
    """Keep embedded code from closing its script element."""
    return re.sub(r"</(script)", r"<\\/\1", code, flags=re.IGNORECASE)


def find_entry_component(code: str) -> str | None:
    """Name of the component to mount: the default export, else the first capitalized declaration."""
    for pattern in (_EXPORT_DEFAULT_NAME, _DEFAULT_DECL_NAME):
        match = pattern.search(code)
        if match:
            return match.group(1)
    match = _COMPONENT_DECL.search(code)
    return match.group(1) if match else None


def prepare_module(code: str) -> str:
    """Strip ES module syntax so the code runs as a plain Babel script."""
    code = _IMPORT_LINE.sub("", code)
    code = _EXPORT_DEFAULT_NAME.sub("", code)
    code = _EXPORT_DEFAULT_DECL.sub("", code)
    return _EXPORT.sub("", code)


def _page(title: str, head: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta http-equiv="Content-Security-Policy" content="{CONTENT_SECURITY_POLICY}">
<title>{html.escape(title)}</title>
<style>
{PREVIEW_CSS}
</style>
{head}
</head>
<body>
{body}
</body>
</html>"""


def render_react_preview(code: str, title: str = "Artifact Preview") -> str:
    entry = find_entry_component(code) or "GeneratedArtifact"
    script = _escape_script(prepare_module(code))
    body = f"""<div id="root"></div>
<script type="text/babel" data-presets="react">
const {{ useState, useEffect, useMemo, useCallback, useRef }} = React;
{script}

try {{
  ReactDOM.createRoot(document.getElementById('root')).render(React.createElement({entry}));
}} catch (err) {{
  document.getElementById('root').innerHTML = '<div class="preview-error"></div>';
  document.querySelector('.preview-error').textContent = String(err);
}}
</script>"""
    return _page(title, REACT_SCRIPTS, body)


def render_source_preview(code: str, framework: str, title: str = "Artifact Preview") -> str:
    """Static preview for frameworks without an in-page compiler."""
    body = f'<pre class="preview-source" data-framework="{html.escape(framework)}">{html.escape(code)}</pre>'
    return _page(title, "", body)


def build_preview(code: str, framework: str = "react", title: str = "Artifact Preview") -> str:
    """
    Render a complete HTML page for ``code``.

    Args:
        code: Component source
        framework: ``react`` pages mount the component; others show the source
        title: Page title
    """
    if framework == "react":
        return render_react_preview(code, title)
    return render_source_preview(code, framework, title)


__all__ = ["build_preview", "find_entry_component", "prepare_module", "render_react_preview"]
