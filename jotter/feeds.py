"""Feed generation for Jotter.

This module builds the Atom feed of a site. The feed is a read-only
projection of the post list: one entry per dated post, in post-list order,
with the channel metadata taken from the site configuration.

Classes:
    FeedEntry: One syndicated post.
    Feed: Channel metadata plus its entries.
    AtomWriter: Serializes a Feed as Atom 1.0 and writes it to disk.

Functions:
    build_feed: Create an empty Feed from the site configuration.
    tag_uri: Atom id for a link, absolute even without a site url.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from urllib.parse import urlsplit
from xml.etree.ElementTree import Element, SubElement, tostring

from .config import Config
from .content import ContentItem
from .utils import join_root_url

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
FEED_FILENAME = "atom.xml"


@dataclass
class FeedEntry:
    title: str
    link: str
    description: str
    author: str
    published: datetime


@dataclass
class Feed:
    """Syndication feed.

    Attributes:
        title: Feed title (site title).
        link: Absolute site link.
        description: Feed subtitle.
        author: Site author name.
        email: Site author email.
        copyright: Rights statement.
        updated: Timestamp used when there are no entries.
        entries: Entries in post-list order.
    """

    title: str
    link: str
    description: str = ""
    author: str = ""
    email: str = ""
    copyright: str = ""
    updated: datetime | None = None
    entries: list[FeedEntry] = field(default_factory=list)

    def add(self, item: ContentItem) -> None:
        """Append a post to the feed; undated items are ignored."""
        if item.date is None:
            return
        self.entries.append(
            FeedEntry(
                title=item.title,
                link=join_root_url(self.link, item.url) if self.link else item.url,
                description=item.description,
                author=str(item.frontmatter.get("author") or ""),
                published=item.date,
            )
        )

    @property
    def last_updated(self) -> datetime:
        dates = [entry.published for entry in self.entries]
        if dates:
            return max(dates)
        return self.updated or datetime(1970, 1, 1)


def build_feed(config: Config) -> Feed:
    """Create an empty Feed from the site configuration.

    The feed link joins the ``url`` and ``baseurl`` settings.

    Args:
        config: Site configuration.

    Returns:
        Feed with channel metadata and no entries.
    """
    base = config.get_string("url")
    baseurl = config.get_string("baseurl")
    link = join_root_url(base, baseurl) if base else baseurl
    updated = config.get("time")
    return Feed(
        title=config.get_string("title"),
        link=link.rstrip("/"),
        description=config.get_string("description"),
        author=config.get_string("author"),
        email=config.get_string("email"),
        copyright=config.get_string("copyright"),
        updated=updated if isinstance(updated, datetime) else None,
    )


def tag_uri(link: str, authority: str, date: datetime) -> str:
    """Return ``link`` if it is absolute, otherwise a tag URI (RFC 4151).

    Atom ids must be absolute IRIs; sites built without a ``url`` setting
    only have root-relative links.

    Examples:
        >>> tag_uri("/2021/03/05/x.html", "localhost", datetime(2021, 3, 5))
        'tag:localhost,2021-03-05:/2021/03/05/x.html'
    """
    if urlsplit(link).scheme:
        return link
    return f"tag:{authority},{date:%Y-%m-%d}:{link or '/'}"


def _timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat()


class AtomWriter:
    """Serializes a Feed as Atom 1.0."""

    filename = FEED_FILENAME

    def to_xml(self, feed: Feed) -> str:
        """Serialize a feed.

        Args:
            feed: Feed to serialize.

        Returns:
            Atom XML document as a string.
        """
        authority = feed.email.rpartition("@")[2] or "localhost"
        if not urlsplit(feed.link).scheme:
            logger.debug("No absolute site url configured; feed ids use tag:%s", authority)
        oldest = min((entry.published for entry in feed.entries), default=datetime(1970, 1, 1))
        root = Element("feed", attrib={"xmlns": ATOM_NS})
        SubElement(root, "title").text = feed.title
        SubElement(root, "link", attrib={"href": feed.link or "/"})
        SubElement(root, "id").text = tag_uri(feed.link, authority, oldest)
        SubElement(root, "updated").text = _timestamp(feed.last_updated)
        if feed.description:
            SubElement(root, "subtitle").text = feed.description
        if feed.author or feed.email:
            author_el = SubElement(root, "author")
            SubElement(author_el, "name").text = feed.author
            if feed.email:
                SubElement(author_el, "email").text = feed.email
        if feed.copyright:
            SubElement(root, "rights").text = feed.copyright

        for entry in feed.entries:
            entry_el = SubElement(root, "entry")
            SubElement(entry_el, "title").text = entry.title
            SubElement(entry_el, "link", attrib={"href": entry.link, "rel": "alternate"})
            SubElement(entry_el, "id").text = tag_uri(entry.link, authority, entry.published)
            SubElement(entry_el, "updated").text = _timestamp(entry.published)
            SubElement(entry_el, "published").text = _timestamp(entry.published)
            if entry.description:
                SubElement(entry_el, "summary", attrib={"type": "html"}).text = entry.description
            if entry.author:
                author_el = SubElement(entry_el, "author")
                SubElement(author_el, "name").text = entry.author

        body = tostring(root, encoding="unicode")
        return f'<?xml version="1.0" encoding="utf-8"?>\n{body}\n'

    def write(self, output_dir: Path, feed: Feed) -> Path:
        """Write the feed to ``output_dir``.

        Returns:
            Path of the written file.
        """
        output_path = output_dir / self.filename
        output_path.write_text(self.to_xml(feed), encoding="utf-8")
        return output_path
