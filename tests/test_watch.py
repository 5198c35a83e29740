import logging
import threading
import time
from pathlib import Path

import pytest

from jotter.build import BuildResult
from jotter.errors import ScanError, TemplateError
from jotter.feeds import Feed
from jotter.watch import ReadWriteLock, WatchCoordinator, WatchState, _ChangeHandler


class FakeSite:
    """Stands in for Site; counts reloads and generations."""

    def __init__(self, src: Path, generation: int = 0):
        self.src = src
        self.dest = src / "_site"
        self.generation = generation
        self.reload_error = None
        self.generate_error = None
        self.on_generate = None

    def reloaded(self):
        if self.reload_error:
            raise self.reload_error
        nxt = FakeSite(self.src, self.generation + 1)
        nxt.generate_error = self.generate_error
        nxt.on_generate = self.on_generate
        return nxt

    def generate(self):
        if self.on_generate:
            self.on_generate()
        if self.generate_error:
            raise self.generate_error
        return BuildResult(
            output_dir=self.dest, written=["index.html"], static_files=[], feed=Feed("", "")
        )


class DummyEvent:
    def __init__(self, path, is_directory=False, event_type="modified", dest_path=None):
        self.src_path = path
        self.dest_path = dest_path
        self.is_directory = is_directory
        self.event_type = event_type


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.005)


# --- ReadWriteLock ---


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    barrier = threading.Barrier(2, timeout=2)
    errors = []

    def reader():
        with lock.read_locked():
            try:
                barrier.wait()
            except threading.BrokenBarrierError as exc:
                errors.append(exc)

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)
    assert errors == []


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    entered = threading.Event()

    def reader():
        with lock.read_locked():
            entered.set()

    lock.acquire_write()
    t = threading.Thread(target=reader)
    t.start()
    assert not entered.wait(0.1)
    lock.release_write()
    assert entered.wait(2)
    t.join(2)


def test_waiting_writer_goes_before_new_readers():
    lock = ReadWriteLock()
    order = []

    def writer():
        with lock.write_locked():
            order.append("writer")

    def late_reader():
        with lock.read_locked():
            order.append("reader")

    lock.acquire_read()
    w = threading.Thread(target=writer)
    w.start()
    wait_for(lambda: lock._writers_waiting == 1)
    r = threading.Thread(target=late_reader)
    r.start()
    time.sleep(0.05)
    assert order == []
    lock.release_read()
    w.join(2)
    r.join(2)
    assert order == ["writer", "reader"]


def test_unbalanced_release_raises():
    lock = ReadWriteLock()
    with pytest.raises(RuntimeError):
        lock.release_read()
    with pytest.raises(RuntimeError):
        lock.release_write()


# --- WatchCoordinator ---


def test_is_relevant_filters_output_and_hidden_files(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    assert coordinator.is_relevant(tmp_path / "about.md")
    assert coordinator.is_relevant(tmp_path / "_posts" / "2021-01-01-a.md")
    assert not coordinator.is_relevant(tmp_path / "_site" / "index.html")
    assert not coordinator.is_relevant(tmp_path / ".git" / "index")
    assert not coordinator.is_relevant(tmp_path / "about.md~")
    assert not coordinator.is_relevant(tmp_path / "drafts" / ".about.md.swp")


def test_notify_ignores_irrelevant_paths(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    assert coordinator.notify(tmp_path / "_site" / "index.html") is False
    assert coordinator.site.generation == 0

    assert coordinator.notify(tmp_path / "about.md") is True
    assert coordinator.site.generation == 1


def test_rebuild_replaces_site_and_notifies_listeners(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    seen = []
    coordinator.add_listener(seen.append)

    assert coordinator.rebuild() is True
    assert coordinator.site.generation == 1
    assert seen == [coordinator.site]
    assert coordinator.state is WatchState.IDLE


def test_failed_reload_keeps_previous_site(tmp_path, caplog):
    original = FakeSite(tmp_path)
    original.reload_error = ScanError("broken.md", "Malformed front matter")
    coordinator = WatchCoordinator(original)
    seen = []
    coordinator.add_listener(seen.append)

    with caplog.at_level(logging.ERROR, logger="jotter.watch"):
        assert coordinator.rebuild() is False
    assert coordinator.site is original
    assert seen == []
    assert coordinator.state is WatchState.IDLE
    assert "Rebuild failed" in caplog.text
    # the lock was released, so requests keep being served
    with coordinator.reading() as site:
        assert site is original


def test_failed_generate_is_contained(tmp_path):
    original = FakeSite(tmp_path)
    original.generate_error = TemplateError("index.html", "Layout not found: x.html")
    coordinator = WatchCoordinator(original)

    assert coordinator.rebuild() is False
    assert coordinator.state is WatchState.IDLE
    assert coordinator.lock._writer is False


def test_rebuild_waits_for_readers_and_blocks_them(tmp_path):
    site = FakeSite(tmp_path)
    generating = threading.Event()
    release = threading.Event()

    def slow_generate():
        generating.set()
        release.wait(2)

    site.on_generate = slow_generate
    coordinator = WatchCoordinator(site)
    rebuild = threading.Thread(target=coordinator.rebuild)

    with coordinator.reading():
        rebuild.start()
        # a rebuild cannot start while a request is reading
        assert not generating.wait(0.1)
        assert coordinator.state is WatchState.IDLE

    assert generating.wait(2)
    assert coordinator.state is WatchState.REBUILDING

    read_done = threading.Event()

    def request():
        with coordinator.reading():
            read_done.set()

    reader = threading.Thread(target=request)
    reader.start()
    # nor can a request read while the rebuild is writing
    assert not read_done.wait(0.1)
    release.set()
    rebuild.join(2)
    assert read_done.wait(2)
    reader.join(2)
    assert coordinator.site.generation == 1


def test_watch_and_stop(monkeypatch, tmp_path):
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((type(handler).__name__, path, recursive))

        def start(self):
            scheduled.append("start")

        def stop(self):
            scheduled.append("stop")

        def join(self):
            scheduled.append("join")

    monkeypatch.setattr("jotter.watch.Observer", DummyObserver)
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    coordinator.watch()
    coordinator.stop()
    coordinator.stop()
    assert scheduled == [("_ChangeHandler", str(tmp_path), True), "start", "stop", "join"]


# --- _ChangeHandler ---


def test_change_handler_filters_events(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    notified = []
    coordinator.notify = notified.append
    handler = _ChangeHandler(coordinator)

    handler.on_any_event(DummyEvent(str(tmp_path / "posts"), is_directory=True))
    handler.on_any_event(DummyEvent(str(tmp_path / "_site" / "blog"), is_directory=True, event_type="deleted"))
    handler.on_any_event(DummyEvent(str(tmp_path / "about.md"), event_type="opened"))
    handler.on_any_event(DummyEvent(str(tmp_path / "about.md"), event_type="closed_no_write"))
    handler.on_any_event(DummyEvent(str(tmp_path / "_site" / "about.html")))
    assert notified == []

    handler.on_any_event(DummyEvent(str(tmp_path / "about.md")))
    assert notified == [str(tmp_path / "about.md")]


def test_change_handler_uses_move_destination(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    notified = []
    coordinator.notify = notified.append
    handler = _ChangeHandler(coordinator)

    # editors save by writing a hidden temp file and renaming it into place
    handler.on_any_event(
        DummyEvent(
            str(tmp_path / ".about.md.tmp"),
            event_type="moved",
            dest_path=str(tmp_path / "about.md"),
        )
    )
    assert notified == [str(tmp_path / "about.md")]


def test_change_handler_reports_directory_removal(tmp_path):
    coordinator = WatchCoordinator(FakeSite(tmp_path))
    notified = []
    coordinator.notify = notified.append
    handler = _ChangeHandler(coordinator)
    trash = tmp_path.parent / "trash"

    handler.on_any_event(DummyEvent(str(tmp_path / "blog"), is_directory=True, event_type="deleted"))
    handler.on_any_event(
        DummyEvent(str(tmp_path / "news"), is_directory=True, event_type="moved", dest_path=str(trash))
    )
    handler.on_any_event(DummyEvent(str(tmp_path / "drafts"), is_directory=True, event_type="created"))
    assert notified == [str(tmp_path / "blog"), str(tmp_path / "news"), str(tmp_path / "drafts")]
