"""Permalink resolution for posts.

A permalink pattern is a URL template such as
``/:categories/:year/:month/:day/:title.html``. Tokens are replaced with values
taken from the post; tokens the resolver does not know are left in place so a
typo in the configuration shows up in the generated URLs.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .utils import slugify

if TYPE_CHECKING:
    from .content import ContentItem

BUILTIN_PATTERNS = {
    "date": "/:categories/:year/:month/:day/:title.html",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "none": "/:categories/:title.html",
}
DEFAULT_PATTERN = BUILTIN_PATTERNS["date"]

TOKEN_RE = re.compile(r":([a-z_]+)")
SLASH_RUN_RE = re.compile(r"/{2,}")


def expand_pattern(pattern: str | None) -> str:
    """Return the concrete pattern for a configured value.

    Empty values give the default ``date`` style; built-in style names are
    expanded; anything else is used verbatim.
    """
    if not pattern:
        return DEFAULT_PATTERN
    return BUILTIN_PATTERNS.get(pattern, pattern)


def resolve_permalink(pattern: str | None, item: ContentItem) -> str:
    """Compute the URL of a post from a permalink pattern.

    Args:
        pattern: Permalink pattern or built-in style name.
        item: A post. Its date, categories and source filename feed the tokens.

    Returns:
        Root-relative URL. Empty substitutions never leave doubled slashes.

    Raises:
        ValueError: If the item is not a post.
    """
    if item.post is None:
        raise ValueError(f"{item.path} is not a post")
    date = item.post.date
    values = {
        "year": f"{date.year:04d}",
        "month": f"{date.month:02d}",
        "day": f"{date.day:02d}",
        "title": slugify(item.stem),
        "categories": "/".join(item.post.categories),
    }

    def repl(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    url = TOKEN_RE.sub(repl, expand_pattern(pattern))
    url = SLASH_RUN_RE.sub("/", url)
    if not url.startswith("/"):
        url = f"/{url}"
    return url
