"""Watch, reload and regenerate for Jotter.

While the preview server runs, source edits trigger a full reload and
regeneration. The rebuild and the server share one resource, the active
Site and its destination tree, guarded by a single reader/writer lock:

- requests hold the shared side while they read the tree, so any number
  of them proceed together;
- a rebuild holds the exclusive side for its whole duration, so no request
  ever sees a half-written tree. A waiting rebuild blocks new readers and
  starts once current readers finish.

Key classes:
- ReadWriteLock: Writer-preferring shared/exclusive lock.
- WatchCoordinator: Owns the lock and the active Site; runs rebuilds.
- _ChangeHandler: watchdog event handler feeding the coordinator.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .site import Site
from .utils import is_hidden_or_temp

logger = logging.getLogger(__name__)

# Opening or reading a file also raises events on some platforms; the rebuild
# reads every source, so only mutations count.
WATCHED_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class ReadWriteLock:
    """Shared/exclusive lock built on a condition variable.

    Writers take priority: once a writer is waiting, new readers queue behind
    it, so a stream of requests cannot starve a rebuild.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a reader")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a writer")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class WatchState(enum.Enum):
    IDLE = "idle"
    REBUILDING = "rebuilding"


class WatchCoordinator:
    """Serializes rebuilds against concurrent readers of the site.

    The coordinator holds the only mutable reference to the active Site and
    replaces it wholesale when a reload succeeds.

    Attributes:
        lock: The reader/writer lock shared with the preview server.
        state: IDLE, or REBUILDING while a rebuild holds the lock.
    """

    def __init__(self, site: Site, lock: ReadWriteLock | None = None):
        self._site = site
        self.lock = lock or ReadWriteLock()
        self.state = WatchState.IDLE
        self._listeners: list[Callable[[Site], None]] = []
        self._observer: Observer | None = None

    @property
    def site(self) -> Site:
        return self._site

    @contextmanager
    def reading(self) -> Iterator[Site]:
        """Hold the shared lock and yield the active Site."""
        with self.lock.read_locked():
            yield self._site

    def add_listener(self, callback: Callable[[Site], None]) -> None:
        """Register a callback run after each successful rebuild."""
        self._listeners.append(callback)

    def is_relevant(self, path: Path | str) -> bool:
        """Return True if a change to ``path`` should trigger a rebuild.

        Changes inside the destination (our own output) and to hidden or
        temporary files are ignored.
        """
        path = Path(path).absolute()
        site = self._site
        try:
            path.relative_to(site.dest)
            return False
        except ValueError:
            pass
        try:
            parts = path.relative_to(site.src).parts
        except ValueError:
            parts = (path.name,)
        return not any(is_hidden_or_temp(part) for part in parts)

    def notify(self, path: Path | str) -> bool:
        """Handle a file system change notification.

        Returns:
            True if a rebuild was attempted.
        """
        if not self.is_relevant(path):
            return False
        logger.info("Change detected: %s", path)
        self.rebuild()
        return True

    def rebuild(self) -> bool:
        """Reload the site and regenerate it under the exclusive lock.

        Failures are logged and the previous output stays in place to be
        served; they are never raised.

        Returns:
            True if the rebuild succeeded.
        """
        with self.lock.write_locked():
            self.state = WatchState.REBUILDING
            try:
                site = self._site.reloaded()
                self._site = site
                result = site.generate()
            except Exception:
                logger.exception("Rebuild failed; serving the previous output")
                return False
            finally:
                self.state = WatchState.IDLE
        logger.info("Rebuilt %d pages into %s", len(result.written), result.output_dir)
        for listener in list(self._listeners):
            listener(site)
        return True

    def watch(self) -> None:
        """Start watching the source tree for changes."""
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self._site.src), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Listening for changes to %s", self._site.src)

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, coordinator: WatchCoordinator):
        super().__init__()
        self.coordinator = coordinator

    def on_any_event(self, event):
        if event.event_type not in WATCHED_EVENTS:
            return
        # a directory is "modified" whenever its children change, including _site
        if event.is_directory and event.event_type == "modified":
            return
        for attr in ("src_path", "dest_path"):
            path = getattr(event, attr, None)
            if path and self.coordinator.is_relevant(path):
                self.coordinator.notify(path)
                return
