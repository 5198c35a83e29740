"""Destination directory synchronization.

Before every build the destination is emptied of everything the build can
regenerate, while paths matching a destination-ignore prefix (a `.git`
checkout, a CNAME file) are left exactly as they are. This makes each build
a full rebuild: output of removed or renamed sources cannot linger.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from .errors import SyncError

logger = logging.getLogger(__name__)


def matches_ignore(rel: str, ignore: Sequence[str]) -> bool:
    """Return True if ``rel`` starts with any ignore prefix.

    Examples:
        >>> matches_ignore(".git/config", [".git"])
        True

        >>> matches_ignore("index.html", [".git"])
        False
    """
    return any(rel.startswith(prefix) for prefix in ignore if prefix)


def _is_ancestor(rel: str, ignore: Sequence[str]) -> bool:
    """Return True if the directory ``rel`` contains a protected prefix."""
    head = f"{rel}/"
    return any(prefix.startswith(head) for prefix in ignore if prefix)


def _remove(path: Path) -> None:
    if path.is_symlink() or not path.is_dir():
        path.unlink()
    else:
        shutil.rmtree(path)


def prepare_destination(dest: Path, ignore: Sequence[str] | None) -> None:
    """Reconcile the destination directory before a build.

    Args:
        dest: Destination root.
        ignore: Destination-ignore prefixes, relative to ``dest`` in POSIX
            form. None when no ignore list is configured, in which case the
            whole tree is removed and recreated.

    Raises:
        SyncError: If the destination cannot be created or cleaned.
    """
    try:
        if ignore is None:
            if dest.exists():
                shutil.rmtree(dest)
            dest.mkdir(parents=True, exist_ok=True)
            return

        dest.mkdir(parents=True, exist_ok=True)
        for dirpath, dirnames, filenames in os.walk(dest):
            base = Path(dirpath)
            kept: list[str] = []
            for name in dirnames:
                path = base / name
                rel = path.relative_to(dest).as_posix()
                if matches_ignore(rel, ignore):
                    logger.debug("Ignoring destination directory: %s", rel)
                elif _is_ancestor(rel, ignore) and not path.is_symlink():
                    kept.append(name)
                else:
                    _remove(path)
            dirnames[:] = kept
            for name in filenames:
                path = base / name
                rel = path.relative_to(dest).as_posix()
                if matches_ignore(rel, ignore):
                    logger.debug("Ignoring destination file: %s", rel)
                    continue
                _remove(path)
    except OSError as exc:
        raise SyncError(dest, f"Cannot prepare destination: {exc}", exc) from exc
