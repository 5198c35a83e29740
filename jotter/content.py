"""Content model and source scanning for Jotter.

This module turns a source tree into an in-memory ContentStore. It walks the
tree once, classifies every file (template, post, page, static or ignored),
parses front matter, converts Markdown and computes each item's URL.

Key classes:
- ContentItem: A post or a page, tagged by ItemKind.
- PostInfo: The post-only payload (date, categories, tags).
- ContentStore: Posts, pages, static files and compiled templates of a site.
- Scanner: Builds a ContentStore from a source tree.

Source tree conventions:
- `_layouts/`, `_includes/`: templates.
- `<category dirs>/_posts/YYYY-MM-DD-title.md`: posts.
- Any other path with a component starting with `_` is ignored.
- `.md`, `.markdown`, `.html`, `.xml` files elsewhere: pages.
- Everything else: static files copied verbatim.
- Names starting with `.` or ending with `~` are skipped everywhere.
"""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .config import Config
from .errors import ScanError
from .extractors import extract_frontmatter, parse_labels, resolve_post_date
from .permalinks import resolve_permalink
from .renderers import RendererRegistry, default_renderer_registry
from .templates import TemplateSet, template_name
from .utils import (
    DATE_PREFIX_RE,
    is_hidden_or_temp,
    is_internal_path,
    is_markdown,
    is_markup,
    titleize,
)

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
NO_LAYOUT = frozenset({"nil", "none"})


class ItemKind(enum.Enum):
    POST = "post"
    PAGE = "page"


class FileKind(enum.Enum):
    """Classification of a source file."""

    TEMPLATE = "template"
    POST = "post"
    PAGE = "page"
    STATIC = "static"
    IGNORED = "ignored"


@dataclass
class PostInfo:
    """Post-only metadata.

    Attributes:
        date: Publication date.
        categories: Category labels, directory categories first.
        tags: Tag labels.
    """

    date: datetime
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass
class ContentItem:
    """A post or a page.

    Attributes:
        kind: Whether this is a post or a page.
        path: Source path relative to the site root, POSIX style.
        body: Raw body text, front matter removed.
        frontmatter: Parsed front matter fields.
        ext: Source file extension, e.g. ".md".
        url: Root-relative output URL, computed once at scan time.
        layout: Layout name from front matter, or None for no layout.
        content: Body after markup conversion (Markdown becomes HTML).
        post: Post payload; None for pages.
        rendered: Processed body, filled in by the Renderer.
    """

    kind: ItemKind
    path: str
    body: str
    frontmatter: dict[str, Any]
    ext: str
    url: str
    layout: str | None
    content: str
    post: PostInfo | None = None
    rendered: str | None = None

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not fields; exposes custom front
        # matter to templates (``post.subtitle``).
        if name.startswith("_"):
            raise AttributeError(name)
        frontmatter = self.__dict__.get("frontmatter") or {}
        if name in frontmatter:
            return frontmatter[name]
        raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}")

    @property
    def is_post(self) -> bool:
        return self.kind is ItemKind.POST

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def title(self) -> str:
        title = self.frontmatter.get("title")
        return str(title) if title is not None else titleize(PurePosixPath(self.path).name)

    @property
    def description(self) -> str:
        return str(self.frontmatter.get("description") or "")

    @property
    def date(self) -> datetime | None:
        return self.post.date if self.post else None

    @property
    def categories(self) -> list[str]:
        return self.post.categories if self.post else []

    @property
    def tags(self) -> list[str]:
        return self.post.tags if self.post else []

    @property
    def id(self) -> str:
        """URL without its extension or trailing slash."""
        url = self.url.rstrip("/") or "/"
        head, _, tail = url.rpartition("/")
        if "." in tail:
            tail = tail.rsplit(".", 1)[0]
        return f"{head}/{tail}" if tail else url

    def to_context(self) -> dict[str, Any]:
        """Return the mapping exposed to templates as ``page``."""
        context = dict(self.frontmatter)
        context.update(
            {
                "kind": self.kind.value,
                "path": self.path,
                "ext": self.ext,
                "url": self.url,
                "id": self.id,
                "title": self.title,
                "description": self.description,
                "layout": self.layout,
                "content": self.rendered if self.rendered is not None else self.content,
                "date": self.date,
                "categories": self.categories,
                "tags": self.tags,
            }
        )
        return context


@dataclass
class ContentStore:
    """In-memory representation of one site's sources.

    Attributes:
        posts: Posts, most recent first.
        pages: Pages in walk order.
        static_files: Source-relative paths of files copied verbatim.
        templates: Compiled layouts and includes.
    """

    posts: list[ContentItem]
    pages: list[ContentItem]
    static_files: list[str]
    templates: TemplateSet


def layout_name(frontmatter: dict[str, Any]) -> str | None:
    """Return the layout named in front matter, or None for no layout."""
    layout = frontmatter.get("layout")
    if layout is None or layout is False:
        return None
    layout = str(layout).strip()
    if not layout or layout.lower() in NO_LAYOUT:
        return None
    return layout


def classify(rel: PurePosixPath) -> FileKind:
    """Classify a source-relative file path.

    Hidden and temporary names are handled by the walk itself.
    """
    if template_name(Path(rel)) is not None:
        return FileKind.TEMPLATE
    if POSTS_DIR in rel.parts[:-1] and is_markup(rel) and DATE_PREFIX_RE.match(rel.stem):
        return FileKind.POST
    if is_internal_path(rel):
        return FileKind.IGNORED
    if is_markup(rel):
        return FileKind.PAGE
    return FileKind.STATIC


def post_sort_key(item: ContentItem) -> tuple[datetime, str]:
    return (item.post.date, item.path)


class Scanner:
    """Builds a ContentStore from a source tree.

    Attributes:
        src: Root directory of the source tree.
        config: Site configuration (the permalink pattern is read from it).
        exclude: Directories never descended, such as an output folder that
            lives inside the source tree.
        renderer_registry: Registry of markup renderers.
    """

    def __init__(
        self,
        src: Path,
        config: Config,
        exclude: Iterable[Path] = (),
        renderer_registry: RendererRegistry | None = None,
    ):
        self.src = src
        self.config = config
        self.exclude = {Path(p).resolve() for p in exclude}
        self.renderer_registry = renderer_registry or default_renderer_registry

    def scan(self) -> ContentStore:
        """Walk the source tree and build a ContentStore.

        Returns:
            The populated store; posts are sorted most recent first.

        Raises:
            ScanError: If a file cannot be read or has malformed front matter.
            TemplateError: If a template fails to compile.
        """
        templates: list[Path] = []
        posts: list[ContentItem] = []
        pages: list[ContentItem] = []
        static_files: list[str] = []

        for path in self._walk():
            rel = PurePosixPath(path.relative_to(self.src).as_posix())
            kind = classify(rel)
            if kind is FileKind.TEMPLATE:
                templates.append(path)
            elif kind is FileKind.POST:
                logger.debug("Parsing post: %s", rel)
                post = self._build_item(path, rel, ItemKind.POST)
                if post is not None:
                    posts.append(post)
            elif kind is FileKind.PAGE:
                logger.debug("Parsing page: %s", rel)
                pages.append(self._build_item(path, rel, ItemKind.PAGE))
            elif kind is FileKind.STATIC:
                static_files.append(str(rel))

        posts.sort(key=post_sort_key, reverse=True)
        return ContentStore(
            posts=posts,
            pages=pages,
            static_files=static_files,
            templates=TemplateSet.compile(self.src, templates),
        )

    def _walk(self) -> Iterable[Path]:
        def on_error(exc: OSError) -> None:
            raise ScanError(exc.filename or self.src, f"Cannot read directory: {exc}", exc)

        for dirpath, dirnames, filenames in os.walk(self.src, onerror=on_error):
            base = Path(dirpath)
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not is_hidden_or_temp(name) and (base / name).resolve() not in self.exclude
            )
            for name in sorted(filenames):
                if is_hidden_or_temp(name):
                    continue
                yield base / name

    def _build_item(self, path: Path, rel: PurePosixPath, kind: ItemKind) -> ContentItem | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ScanError(rel, f"Cannot read file: {exc}", exc) from exc
        frontmatter, body = extract_frontmatter(raw, rel)

        renderer = self.renderer_registry.get_renderer(path)
        content = renderer.render(body) if renderer else body

        item = ContentItem(
            kind=kind,
            path=str(rel),
            body=body,
            frontmatter=frontmatter,
            ext=rel.suffix,
            url="",
            layout=layout_name(frontmatter),
            content=content,
        )
        if kind is ItemKind.POST:
            date = resolve_post_date(path, frontmatter)
            if date is None:
                logger.debug("Skipping post without a date: %s", rel)
                return None
            item.post = PostInfo(
                date=date,
                categories=parse_labels(
                    self._directory_categories(rel),
                    frontmatter.get("category"),
                    frontmatter.get("categories"),
                ),
                tags=parse_labels(frontmatter.get("tag"), frontmatter.get("tags")),
            )
            pattern = frontmatter.get("permalink") or self.config.get_string("permalink")
            item.url = resolve_permalink(pattern, item)
        else:
            item.url = self._page_url(rel, frontmatter)
        return item

    @staticmethod
    def _directory_categories(rel: PurePosixPath) -> list[str]:
        parts = list(rel.parts[:-1])
        index = parts.index(POSTS_DIR)
        return [part for part in parts[:index] if part]

    @staticmethod
    def _page_url(rel: PurePosixPath, frontmatter: dict[str, Any]) -> str:
        permalink = frontmatter.get("permalink")
        if permalink:
            permalink = str(permalink)
            return permalink if permalink.startswith("/") else f"/{permalink}"
        if is_markdown(rel):
            rel = rel.with_suffix(".html")
        return f"/{rel}"
