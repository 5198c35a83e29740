"""Local preview server for Jotter.

Serves the destination tree over HTTP while the watcher regenerates it:

- every request reads the tree under the coordinator's shared lock, so a
  page is never served while a rebuild is rewriting the tree;
- a configured baseurl prefix is stripped from request paths, so links work
  the same locally as on the deployed site;
- HTML responses get a small script that opens a websocket and reloads the
  page after each successful rebuild;
- directories without an index and missing paths answer 404, using the
  site's own 404.html when it has one.

Key classes:
- PreviewServer: HTTP server wired to a WatchCoordinator.
- ReloadBroadcaster: Websocket endpoint that tells open pages to reload.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import posixpath
import threading
from contextlib import nullcontext
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import unquote, urlsplit, urlunsplit

import websockets

from .site import Site
from .watch import WatchCoordinator

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4000
RELOAD_MESSAGE = json.dumps({"type": "reload"})
RELOAD_SCRIPT = """<script>
(() => {{
  const socket = new WebSocket(`ws://${{location.hostname}}:{port}`);
  socket.addEventListener("message", (event) => {{
    if (JSON.parse(event.data || "{{}}").type === "reload") location.reload();
  }});
}})();
</script>
"""


def live_reload_snippet(ws_port: int) -> str:
    """Return the live reload snippet for a websocket port."""
    return RELOAD_SCRIPT.format(port=ws_port)


def strip_base_url(path: str, base_url: str) -> str:
    """Remove a baseurl prefix from a request path.

    Only whole path segments match.

    Examples:
        >>> strip_base_url("/blog/2021/index.html", "/blog")
        '/2021/index.html'

        >>> strip_base_url("/blogger/", "/blog")
        '/blogger/'
    """
    base = base_url.strip("/")
    if not base:
        return path
    prefix = f"/{base}"
    if path == prefix:
        return "/"
    if path.startswith(f"{prefix}/"):
        return path[len(prefix) :]
    return path


class _PreviewHandler(SimpleHTTPRequestHandler):
    """Request handler for the destination tree.

    Attributes:
        coordinator: Coordinator whose lock guards the tree; None serves
            without locking.
        reload_script: Snippet injected into HTML responses.
    """

    coordinator: WatchCoordinator | None = None
    reload_script = live_reload_snippet(DEFAULT_PORT + 1)

    def do_GET(self):
        with self._reading():
            super().do_GET()

    def do_HEAD(self):
        with self._reading():
            super().do_HEAD()

    def _reading(self):
        if self.coordinator is None:
            return nullcontext()
        return self.coordinator.lock.read_locked()

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def translate_path(self, path):
        base_url = ""
        if self.coordinator is not None:
            base_url = self.coordinator.site.config.get_string("baseurl")
        request_path = strip_base_url(unquote(urlsplit(path).path), base_url)
        # requests never leave the tree
        parts = [p for p in posixpath.normpath(request_path).split("/") if p not in ("", ".", "..")]
        translated = str(Path(self.directory).joinpath(*parts))
        return f"{translated}/" if request_path.endswith("/") else translated

    def list_directory(self, path):
        return self._not_found()

    def _send_html(self, status: int, text: str) -> None:
        head, body_end, tail = text.rpartition("</body>")
        if body_end:
            text = f"{head}{self.reload_script}{body_end}{tail}"
        else:
            text += self.reload_script
        payload = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)

    def _not_found(self):
        page = Path(self.directory) / "404.html"
        if page.is_file():
            self._send_html(404, page.read_text(encoding="utf-8"))
        else:
            self.send_error(404, "File not found")
        return None

    def send_head(self):
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            parts = urlsplit(self.path)
            if not parts.path.endswith("/"):
                self.send_response(HTTPStatus.MOVED_PERMANENTLY)
                self.send_header("Location", urlunsplit(parts._replace(path=f"{parts.path}/")))
                self.send_header("Content-Length", "0")
                self.end_headers()
                return None
            target = target / "index.html"
        if not target.is_file():
            return self._not_found()
        if target.suffix == ".html":
            self._send_html(200, target.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class ReloadBroadcaster:
    """Websocket endpoint that pushes reload messages to open pages.

    The websocket server runs on its own event loop in a background thread;
    ``reload`` may be called from any thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()
        self._task: asyncio.Task | None = None

    def run(self) -> None:
        """Serve websocket clients until ``stop`` is called."""
        asyncio.set_event_loop(self.loop)
        self._task = self.loop.create_task(self._serve())
        try:
            self.loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            logger.debug("Live reload stopped")
        except OSError as exc:
            logger.warning("Live reload unavailable on port %d: %s", self.port, exc)
        finally:
            self.loop.close()

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self.handle, "0.0.0.0", self.port):
            await asyncio.Future()

    async def handle(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    async def send_all(self, message: str) -> None:
        """Send ``message`` to every client, dropping the ones that fail."""
        clients = list(self.clients)
        results = await asyncio.gather(
            *(ws.send(message) for ws in clients), return_exceptions=True
        )
        for ws, result in zip(clients, results):
            if isinstance(result, Exception):
                self.clients.discard(ws)

    def reload(self) -> None:
        if not self.loop.is_running():
            return
        asyncio.run_coroutine_threadsafe(self.send_all(RELOAD_MESSAGE), self.loop)

    def stop(self) -> None:
        if self._task is None or self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self._task.cancel)


class PreviewServer:
    """Serves a site and reloads open pages after each rebuild.

    Attributes:
        coordinator: Watch coordinator owning the active Site.
        http_port: Port of the HTTP server.
        ws_port: Port of the live reload websocket.
        broadcaster: The live reload endpoint.
    """

    def __init__(
        self,
        coordinator: WatchCoordinator,
        http_port: int = DEFAULT_PORT,
        ws_port: int | None = None,
    ):
        self.coordinator = coordinator
        self.http_port = http_port
        self.ws_port = ws_port if ws_port is not None else http_port + 1
        self.broadcaster = ReloadBroadcaster(self.ws_port)
        self._httpd: ThreadingHTTPServer | None = None
        coordinator.add_listener(self._on_rebuilt)

    def handler_class(self) -> type[_PreviewHandler]:
        """Return a request handler class bound to this server."""
        return type(
            "_BoundPreviewHandler",
            (_PreviewHandler,),
            {"coordinator": self.coordinator, "reload_script": live_reload_snippet(self.ws_port)},
        )

    def start(self, watch: bool = True) -> None:  # pragma: no cover - integration path
        """Serve until interrupted.

        Args:
            watch: Also watch the source tree and regenerate on changes.
        """
        threading.Thread(target=self.broadcaster.run, name="jotter-reload", daemon=True).start()
        if watch:
            self.coordinator.watch()
        site = self.coordinator.site
        handler = functools.partial(self.handler_class(), directory=str(site.dest))
        self._httpd = ThreadingHTTPServer(("", self.http_port), handler)
        base = site.config.get_string("baseurl")
        logger.info("Serving %s at http://localhost:%d%s", site.dest, self.http_port, base)
        try:
            self._httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Stopping preview server")
        finally:
            self.stop()

    def stop(self) -> None:
        self.coordinator.stop()
        if self._httpd is not None:
            self._httpd.server_close()
            self._httpd = None
        self.broadcaster.stop()

    def _on_rebuilt(self, site: Site) -> None:
        self.broadcaster.reload()
