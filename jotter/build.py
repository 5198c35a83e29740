"""Site generation for Jotter.

This module contains the rendering pipeline that turns a loaded Site into
an output tree. Generation is always a full rebuild: the destination is
synchronized first, then every page and post is rendered through its layout,
the Atom feed is written and static files are copied.

Key pieces:
- Renderer: Renders one content item to its destination file.
- generate_site: Runs a complete generation pass.
- BuildResult: Summary of a generation pass.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateNotFound, TemplateSyntaxError

from .content import ContentItem, ItemKind
from .errors import SyncError, TemplateError
from .feeds import AtomWriter, Feed, build_feed
from .sync import prepare_destination
from .utils import append_ext, is_markdown

if TYPE_CHECKING:
    from .site import Site

logger = logging.getLogger(__name__)

LAYOUT_EXT = ".html"


@dataclass
class BuildResult:
    """Result of a site generation pass.

    Attributes:
        output_dir: Directory where the site was built.
        written: Destination-relative paths of rendered items, in write order.
        static_files: Destination-relative paths of copied static files.
        feed: The feed built during the pass.
    """

    output_dir: Path
    written: list[str]
    static_files: list[str]
    feed: Feed


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if isinstance(exc, TemplateNotFound):
        return f"Template not found: {exc.name}"

    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    return f"{error_type}: {exc}"


def destination_path(dest: Path, url: str) -> Path:
    """Return the file an item URL is written to.

    URLs ending in ``/`` are directory indexes.

    Examples:
        >>> destination_path(Path("/out"), "/blog/")
        PosixPath('/out/blog/index.html')
    """
    rel = url.lstrip("/")
    if not rel or url.endswith("/"):
        rel = f"{rel}index.html"
    return dest / rel


class Renderer:
    """Renders content items of a Site into its destination directory.

    Attributes:
        site: The site being generated.
        feed: Feed that posts are folded into as they are rendered.
    """

    def __init__(self, site: Site, feed: Feed):
        self.site = site
        self.feed = feed

    def render_item(self, item: ContentItem) -> str:
        """Produce the final output of an item.

        Args:
            item: Post or page to render.

        Returns:
            Output text.

        Raises:
            TemplateError: If the body or layout fails, or the layout is missing.
        """
        templates = self.site.store.templates
        context: dict[str, Any] = {"site": self.site.config, "page": item.to_context()}

        content = item.content
        if not is_markdown(item.ext):
            try:
                content = templates.render_string(item.content, context)
            except Exception as exc:
                raise TemplateError(item.path, _format_error_message(exc), exc) from exc

        item.rendered = content
        context["page"]["content"] = content
        context["content"] = content

        if item.layout is None:
            return content

        layout = append_ext(item.layout, LAYOUT_EXT)
        if layout not in templates:
            raise TemplateError(item.path, f"Layout not found: {layout}")
        try:
            return templates.render(layout, context)
        except Exception as exc:
            raise TemplateError(item.path, _format_error_message(exc), exc) from exc

    def render(self, item: ContentItem) -> Path:
        """Render an item and write it to its destination file.

        Returns:
            Path of the written file.
        """
        target = destination_path(self.site.dest, item.url)
        output = self.render_item(item)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                f.write(output)
        except OSError as exc:
            raise SyncError(target, f"Cannot write output: {exc}", exc) from exc
        logger.debug("Generating page: %s", item.url)

        if item.kind is ItemKind.POST:
            self.feed.add(item)
        return target


def _copy_static(site: Site, rel: str) -> None:
    source = site.src / rel
    target = site.dest / rel
    logger.debug("Copying file: %s", rel)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
    except OSError as exc:
        raise SyncError(target, f"Cannot copy static file: {exc}", exc) from exc


def generate_site(site: Site) -> BuildResult:
    """Build the entire static site.

    Args:
        site: Loaded site to generate.

    Returns:
        BuildResult describing what was written.

    Raises:
        SyncError: If the destination cannot be prepared or written.
        TemplateError: If any item fails to render.
    """
    prepare_destination(site.dest, site.ignore)

    feed = build_feed(site.config)
    renderer = Renderer(site, feed)
    written: list[str] = []
    for item in [*site.store.pages, *site.store.posts]:
        target = renderer.render(item)
        written.append(target.relative_to(site.dest).as_posix())

    writer = AtomWriter()
    try:
        writer.write(site.dest, feed)
    except OSError as exc:
        raise SyncError(site.dest / writer.filename, f"Cannot write feed: {exc}", exc) from exc
    logger.debug("Generating feed: %s", writer.filename)

    for rel in site.store.static_files:
        _copy_static(site, rel)

    return BuildResult(
        output_dir=site.dest,
        written=written,
        static_files=list(site.store.static_files),
        feed=feed,
    )
