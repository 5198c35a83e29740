"""The Site aggregate for Jotter.

A Site ties together a source root, a destination root, the configuration
and the ContentStore scanned from the source. It is built once from a full
scan; reloading builds a fresh Site rather than patching the old one, so a
failed reload never leaves a half-updated Site behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from .build import BuildResult, generate_site
from .collections import aggregate
from .config import DEFAULT_DESTINATION, Config, load_config
from .content import ContentStore, Scanner
from .publish import Publisher

logger = logging.getLogger(__name__)


class Site:
    """A loaded site.

    Attributes:
        src: Source root directory.
        dest: Destination root directory.
        config: Site configuration, including aggregated collections.
        store: Posts, pages, static files and templates.
        ignore: Destination-ignore prefixes, or None if not configured.
    """

    def __init__(
        self,
        src: Path,
        dest: Path,
        config: Config,
        store: ContentStore,
        ignore: list[str] | None = None,
        base_url: str | None = None,
    ):
        self.src = src
        self.dest = dest
        self.config = config
        self.store = store
        self.ignore = ignore
        self._base_url = base_url

    @classmethod
    def load(
        cls,
        src: Path,
        dest: Path | None = None,
        base_url: str | None = None,
        now: datetime | None = None,
    ) -> Site:
        """Load a site from its source tree.

        Args:
            src: Source root directory.
            dest: Destination override. Defaults to the ``destination`` config
                key, then ``_site`` inside the source root.
            base_url: Base URL override for the ``baseurl`` config key.
            now: Generation timestamp exposed to templates as ``site.time``.

        Returns:
            A fully scanned and aggregated Site.

        Raises:
            ConfigError: If the configuration is missing or malformed.
            ScanError: If a source file cannot be read or parsed.
            TemplateError: If a template fails to compile.
        """
        src = Path(src).resolve()
        config = load_config(src)
        logger.debug("Loaded config for %s", src)

        if dest is None:
            configured = config.get_string("destination")
            dest = src / (configured or DEFAULT_DESTINATION)
        dest = Path(dest).resolve()

        if base_url is not None:
            config["baseurl"] = base_url
        elif config.get("baseurl") is None:
            config["baseurl"] = ""

        ignore = config.get_list("destignore") if "destignore" in config else None
        if ignore is not None:
            ignore = [str(prefix).strip("/") for prefix in ignore]

        store = Scanner(src, config, exclude=[dest]).scan()
        aggregate(config, store.posts, store.pages, now=now)
        logger.debug(
            "Scanned %d posts, %d pages, %d static files",
            len(store.posts),
            len(store.pages),
            len(store.static_files),
        )
        return cls(src, dest, config, store, ignore=ignore, base_url=base_url)

    def reloaded(self) -> Site:
        """Return a new Site built from a fresh scan of the same source.

        The destination and base URL overrides are kept; the configuration
        file is read again. This Site is left untouched if loading fails.
        """
        return type(self).load(self.src, dest=self.dest, base_url=self._base_url)

    def generate(self) -> BuildResult:
        """Write the full output tree. Repeated calls give identical output."""
        return generate_site(self)

    def deploy(self, publisher: Publisher) -> list[str]:
        """Upload the generated output tree with ``publisher``.

        Returns:
            Object keys that were uploaded.
        """
        return publisher.deploy(self.dest)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Site({self.src} -> {self.dest})"
