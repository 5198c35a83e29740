from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime

from .config import Config
from .content import ContentItem

AGGREGATE_KEYS = ("posts", "pages", "tags", "categories", "time")


class PostCollection(Sequence[ContentItem]):
    """Lightweight helper for working with lists of posts in templates and code."""

    def __init__(self, items: Iterable[ContentItem]):
        self._items = list(items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    def with_tag(self, tag: str) -> PostCollection:
        return PostCollection(p for p in self._items if tag in p.tags)

    def in_category(self, category: str) -> PostCollection:
        return PostCollection(p for p in self._items if category in p.categories)

    def latest(self, count: int = 5) -> PostCollection:
        return PostCollection(self._items[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._items)} items)"


class LabelIndex(Mapping[str, PostCollection]):
    """Mapping of a tag or category label to its posts, in post order."""

    def __init__(self, mapping: dict[str, Iterable[ContentItem]]):
        self._mapping = {k: PostCollection(v) for k, v in mapping.items()}

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"LabelIndex({len(self._mapping)} labels)"


def build_label_index(posts: Iterable[ContentItem], attribute: str) -> LabelIndex:
    """Build an index mapping labels to the posts carrying them.

    Args:
        posts: Posts, in the order they should appear under each label.
        attribute: ``"tags"`` or ``"categories"``.

    Returns:
        LabelIndex with labels in first-seen order.
    """
    index: dict[str, list[ContentItem]] = {}
    for post in posts:
        for label in getattr(post, attribute):
            index.setdefault(label, []).append(post)
    return LabelIndex(index)


def aggregate(
    config: Config,
    posts: Sequence[ContentItem],
    pages: Sequence[ContentItem] = (),
    now: datetime | None = None,
) -> None:
    """Inject computed collections into the site configuration.

    Sets ``posts``, ``pages``, ``tags``, ``categories`` and ``time``,
    replacing any values left by an earlier run.

    Args:
        config: Site configuration to update in place.
        posts: Posts, most recent first.
        pages: Pages of the site.
        now: Generation timestamp; defaults to the current time.
    """
    config["posts"] = PostCollection(posts)
    config["pages"] = PostCollection(pages)
    config["tags"] = build_label_index(posts, "tags")
    config["categories"] = build_label_index(posts, "categories")
    config["time"] = now or datetime.now()
