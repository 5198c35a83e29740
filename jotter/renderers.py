"""Markup converters for Jotter.

The scanner converts every post and page body exactly once, when the file is
read. Markdown becomes HTML here; HTML and XML bodies are kept as they are,
because they may hold template expressions that only make sense once the
whole site is loaded.

Key classes:
- MarkdownRenderer: Markdown to HTML, fenced code highlighted by Pygments.
- PassthroughRenderer: HTML and XML bodies, returned unchanged.
- RendererRegistry: Chooses a converter by file extension.
"""

from __future__ import annotations

from html import escape
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .protocols import ContentRenderer
from .utils import is_markdown, is_markup

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune HTML output with Pygments for fenced code.

    Raw HTML inside Markdown is passed through untouched.
    """

    def __init__(self):
        super().__init__(escape=False)
        self._formatter = HtmlFormatter(cssclass="highlight")

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                pass
            else:
                return highlight(code, lexer, self._formatter)
        # unknown or missing language: plain block
        css = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{css}>{escape(code, quote=False)}</code></pre>\n"


class MarkdownRenderer:
    """Converts Markdown bodies to HTML."""

    def __init__(self):
        self._markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=MARKDOWN_PLUGINS
        )

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> str:
        return self._markdown(content)


class PassthroughRenderer:
    """Keeps HTML and XML bodies as written.

    The build expands template expressions in these bodies against the
    TemplateSet.
    """

    @property
    def source_type(self) -> str:
        return "template"

    def can_render(self, path: Path) -> bool:
        return is_markup(path) and not is_markdown(path)

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Ordered list of converters; the first that accepts a path wins."""

    def __init__(self, renderers: list[ContentRenderer] | None = None):
        if renderers is None:
            renderers = [MarkdownRenderer(), PassthroughRenderer()]
        self._renderers = list(renderers)

    def register(self, renderer: ContentRenderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Return the converter for ``path``, or None for static files."""
        return next((r for r in self._renderers if r.can_render(path)), None)


default_renderer_registry = RendererRegistry()
