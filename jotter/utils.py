"""Small helpers shared across Jotter.

Name handling (slugs, titles, date prefixes), source path classification and
URL joining. Nothing here touches the file system.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePath

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown", ".mdown", ".mkd"})
MARKUP_EXTENSIONS = MARKDOWN_EXTENSIONS | {".html", ".htm", ".xml"}

DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")
NON_SLUG_RE = re.compile(r"[^a-zA-Z0-9]+")
WORD_SPLIT_RE = re.compile(r"[\s\-_]+")


def _strip_date_prefix(stem: str) -> str:
    match = DATE_PREFIX_RE.match(stem)
    return match.group(4) if match else stem


def slugify(name: str) -> str:
    """Turn a file stem into a lowercase, dash-separated URL segment.

    A leading YYYY-MM-DD- prefix is dropped; an empty result becomes "index".

    Examples:
        >>> slugify("2021-03-05-Hello World!")
        'hello-world'
    """
    slug = NON_SLUG_RE.sub("-", _strip_date_prefix(name)).strip("-").lower()
    return slug or "index"


def titleize(filename: str) -> str:
    """Derive a display title from a file name.

    Examples:
        >>> titleize("2021-03-05-hello-world.md")
        'Hello World'

        >>> titleize("release_notes.html")
        'Release Notes'
    """
    words = WORD_SPLIT_RE.split(_strip_date_prefix(PurePath(filename).stem))
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Parse the YYYY-MM-DD- prefix of a file stem.

    Returns None when there is no prefix or it is not a real calendar date.

    Examples:
        >>> extract_date_from_name("2021-03-05-hello")
        datetime.datetime(2021, 3, 5, 0, 0)

        >>> extract_date_from_name("2021-02-30-hello") is None
        True
    """
    match = DATE_PREFIX_RE.match(name)
    if not match:
        return None
    year, month, day = (int(match.group(i)) for i in (1, 2, 3))
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def is_hidden_or_temp(name: str) -> bool:
    """True for dot-files and editor backups (``name~``)."""
    return name.startswith(".") or name.endswith("~")


def is_internal_path(path: PurePath) -> bool:
    """True when any component starts with ``_`` (layouts, posts, config)."""
    return any(part[:1] == "_" for part in path.parts)


def is_markdown(path: PurePath | str) -> bool:
    """True for Markdown sources.

    Accepts a path or a bare extension such as ``".md"``; case-insensitive.
    """
    if isinstance(path, str) and path.startswith("."):
        suffix = path
    else:
        suffix = PurePath(path).suffix
    return suffix.lower() in MARKDOWN_EXTENSIONS


def is_markup(path: PurePath) -> bool:
    """True for sources that become pages: Markdown, HTML and XML."""
    return path.suffix.lower() in MARKUP_EXTENSIONS


def append_ext(name: str, ext: str) -> str:
    """Give ``name`` the extension ``ext`` unless it already has one.

    Examples:
        >>> append_ext("default", ".html")
        'default.html'

        >>> append_ext("feed.xml", ".html")
        'feed.xml'
    """
    return name if PurePath(name).suffix else f"{name}{ext}"


def join_root_url(root_url: str, path: str) -> str:
    """Join a base URL and a path with exactly one slash between them.

    Examples:
        >>> join_root_url("https://example.com/", "/about")
        'https://example.com/about'

        >>> join_root_url("", "about")
        'about'
    """
    if not root_url:
        return path
    return f"{root_url.rstrip('/')}/{path.lstrip('/')}"
