"""Template set for Jotter.

This module uses Jinja2 to compile the site's layouts and includes and to
render content through them.

Every file under `_layouts/` or `_includes/` is a template, addressed by its
path relative to that folder (`default.html`, `nav/top.html`). Layouts wrap
page content; includes are pulled in from layouts and pages with
``{% include "name.html" %}``.

Key class:
- TemplateSet: Compiled, immutable set of named templates plus helpers for
  rendering layouts and inline template fragments.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jinja2 import DictLoader, Environment, TemplateNotFound, pass_context
from jinja2 import TemplateSyntaxError
from markupsafe import escape

from .errors import ScanError, TemplateError
from .utils import join_root_url, slugify

TEMPLATE_DIRS = ("_layouts", "_includes")


def _date_to_xmlschema(value: date) -> str:
    return value.isoformat()


def _date_to_rfc822(value: datetime) -> str:
    return value.strftime("%a, %d %b %Y %H:%M:%S +0000")


def _date_to_string(value: date) -> str:
    return value.strftime("%d %b %Y")


def _date_to_long_string(value: date) -> str:
    return value.strftime("%d %B %Y")


def _xml_escape(value: Any) -> str:
    return str(escape("" if value is None else value))


def _number_of_words(value: Any) -> int:
    return len(str(value).split())


@pass_context
def _url_for(context, path: str) -> str:
    """Prefix a site path with the configured baseurl."""
    if path.startswith(("http://", "https://", "//")):
        return path
    site = context.get("site") or {}
    base = site.get("baseurl", "") if hasattr(site, "get") else ""
    path = path if path.startswith("/") else f"/{path}"
    return join_root_url(base, path) if base else path


FILTERS = {
    "date_to_xmlschema": _date_to_xmlschema,
    "date_to_rfc822": _date_to_rfc822,
    "date_to_string": _date_to_string,
    "date_to_long_string": _date_to_long_string,
    "xml_escape": _xml_escape,
    "slugify": slugify,
    "number_of_words": _number_of_words,
}


def template_name(rel: Path) -> str | None:
    """Return the template name for a source-relative path, or None.

    Examples:
        >>> template_name(Path("_layouts/post.html"))
        'post.html'

        >>> template_name(Path("about.md")) is None
        True
    """
    parts = rel.parts
    if len(parts) < 2 or parts[0] not in TEMPLATE_DIRS:
        return None
    return "/".join(parts[1:])


class TemplateSet:
    """Compiled set of layout and include templates.

    Attributes:
        env: Jinja2 environment holding the templates.
        origins: Source path of each template, for error messages.
    """

    def __init__(self, sources: dict[str, str], origins: dict[str, Path] | None = None):
        """Compile templates.

        Args:
            sources: Mapping of template name to template source.
            origins: Optional mapping of template name to its source file.

        Raises:
            TemplateError: If any template fails to compile.
        """
        self.origins = MappingProxyType(dict(origins or {}))
        self._sources = MappingProxyType(dict(sources))
        self.env = Environment(
            loader=DictLoader(self._sources),
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.env.filters.update(FILTERS)
        self.env.globals["url_for"] = _url_for
        for name in self._sources:
            try:
                self.env.get_template(name)
            except TemplateSyntaxError as exc:
                raise TemplateError(
                    self.origins.get(name, name),
                    f"Template syntax error on line {exc.lineno}: {exc.message}",
                    exc,
                ) from exc

    @classmethod
    def compile(cls, src: Path, paths: Iterable[Path]) -> TemplateSet:
        """Read and compile template files found in a source tree.

        Args:
            src: Root directory of the source tree.
            paths: Absolute paths of template files.

        Returns:
            The compiled TemplateSet.

        Raises:
            ScanError: If a file cannot be read or two files share a name.
            TemplateError: If a template fails to compile.
        """
        sources: dict[str, str] = {}
        origins: dict[str, Path] = {}
        for path in paths:
            rel = path.relative_to(src)
            name = template_name(rel)
            if name is None:
                raise ScanError(rel, "Not inside a template folder")
            if name in sources:
                raise ScanError(rel, f"Template name {name!r} already used by {origins[name]}")
            try:
                sources[name] = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise ScanError(rel, f"Cannot read template: {exc}", exc) from exc
            origins[name] = rel
        return cls(sources, origins)

    @property
    def names(self) -> list[str]:
        return sorted(self._sources)

    def __contains__(self, name: str) -> bool:
        return name in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a named template.

        Args:
            name: Template name, e.g. ``default.html``.
            context: Variables to make available in the template.

        Returns:
            Rendered string.

        Raises:
            jinja2.TemplateNotFound: If the template does not exist.
        """
        if name not in self._sources:
            raise TemplateNotFound(name)
        return self.env.get_template(name).render(**context)

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Compile and render a template fragment.

        The fragment can include any template of the set.

        Args:
            template: Template source to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        return self.env.from_string(template).render(**context)
