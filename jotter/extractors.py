"""Metadata extractors for Jotter.

This module pulls structured metadata out of content files: the YAML front
matter block, category and tag labels, and the publication date of posts.
Each helper handles a single kind of metadata.

Key functions:
- extract_frontmatter: Splits a file into its front matter mapping and body.
- parse_labels: Normalizes category/tag values into a list of strings.
- resolve_post_date: Picks the date of a post from front matter or filename.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import ScanError
from .utils import extract_date_from_name

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)


def extract_frontmatter(text: str, path: Path | str = "<string>") -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from content.

    Files without a leading ``---`` block have empty front matter.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        Tuple of (frontmatter dict, remaining content).

    Raises:
        ScanError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ScanError(path, f"Malformed front matter: {exc}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ScanError(path, "Front matter must be a mapping")
    return data, text[match.end() :]


def parse_labels(*values: Any) -> list[str]:
    """Merge category or tag values into an ordered list of unique labels.

    Each value may be a list, a whitespace-separated string, a scalar, or None.

    Examples:
        >>> parse_labels("go python", ["python", "web"])
        ['go', 'python', 'web']
    """
    labels: list[str] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, str):
            items = value.split()
        elif isinstance(value, (list, tuple)):
            items = [str(item) for item in value if item is not None]
        else:
            items = [str(value)]
        for label in items:
            if label and label not in labels:
                labels.append(label)
    return labels


def _as_datetime(value: Any, path: Path | str) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError as exc:
            raise ScanError(path, f"Invalid date {value!r}", exc) from exc
    raise ScanError(path, f"Invalid date {value!r}")


def resolve_post_date(path: Path, frontmatter: dict[str, Any]) -> datetime | None:
    """Resolve the publication date of a post.

    A ``date`` in front matter wins; otherwise the YYYY-MM-DD- filename prefix
    is used. Timezone information is dropped so the wall-clock time is kept.

    Args:
        path: Path of the post source file.
        frontmatter: Parsed front matter.

    Returns:
        The post date, or None if the file has no resolvable date.

    Raises:
        ScanError: If the front matter date cannot be parsed.
    """
    if frontmatter.get("date") is not None:
        return _as_datetime(frontmatter["date"], path)
    return extract_date_from_name(path.stem)
