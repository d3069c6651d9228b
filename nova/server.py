"""Development server for Nova.

Serves the theme directory with live updates for local authoring:
- Injects a live-update script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Serves POST requests for .json, .txt and .html files as GET, since the
  theme's demo pages post to static fixtures.
- Pushes stylesheet updates without navigation and full reloads for markup.

Key classes:
- DevServer: HTTP server plus its live-reload session.
- LiveReloadSession: WebSocket server owning the connected browser clients.
- _DevRequestHandler: HTTP request handler with script injection and POST rewrite.
"""

from __future__ import annotations

import asyncio
import functools
import json
import threading
import webbrowser
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

import websockets

from .config import load_config

POST_AS_GET_EXTENSIONS = (".json", ".txt", ".html")


class _DevRequestHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects the live-update script into HTML pages.

    Attributes:
        reload_script: JavaScript that listens for reload and css messages.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
        if (data.type === 'css') {{
          const paths = data.paths || [];
          document.querySelectorAll('link[rel="stylesheet"]').forEach((link) => {{
            const url = new URL(link.href);
            if (!paths.some((p) => url.pathname.endsWith(p))) return;
            url.searchParams.set('livereload', Date.now());
            link.href = url.toString();
          }});
        }}
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=3001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def do_POST(self):
        self._discard_body()
        if self.rewrite_post():
            self.do_GET()
            return
        self.send_error(
            HTTPStatus.NOT_IMPLEMENTED, f"Unsupported method ({self.command!r})"
        )

    def rewrite_post(self) -> bool:
        """Turn a POST for a static data or markup file into a GET.

        Returns:
            True if the request was rewritten.
        """
        path = urlsplit(self.path).path
        if self.command.upper() != "POST" or not path.endswith(POST_AS_GET_EXTENSIONS):
            return False
        print(f"[POST => GET] : {self.path}")
        self.command = "GET"
        return True

    def _discard_body(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        if length > 0:
            self.rfile.read(length)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def _inject(self, content: str) -> bytes:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        return content.encode("utf-8")

    def _send_html(self, status: int, encoded: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, self._inject(error_page.read_text(encoding="utf-8")))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path = self.translate_path(self.path)
        path_obj = Path(path)
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if index_path.exists():
                path = str(index_path)
                path_obj = index_path
            else:
                return self._serve_404()
        elif not path_obj.exists():
            return self._serve_404()

        if path.endswith(".html"):
            self._send_html(200, self._inject(path_obj.read_text(encoding="utf-8")))
            return None
        return super().send_head()


class LiveReloadSession:
    """WebSocket server that pushes live updates to connected browsers.

    The session owns its client registry and event loop; the style pipeline
    and watch rules receive it by reference.

    Attributes:
        ws_port: Port for WebSocket connections.
        _clients: Set of connected WebSocket clients.
        _loop: Event loop running the WebSocket server.
    """

    def __init__(self, ws_port: int, host: str = "0.0.0.0"):
        self.ws_port = ws_port
        self.host = host
        self._clients: set = set()
        self._loop = asyncio.new_event_loop()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def start(self) -> None:  # pragma: no cover - integration path
        threading.Thread(target=self._run, daemon=True).start()

    def stop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)

    def reload(self) -> None:
        """Ask every connected page to reload."""
        self._broadcast({"type": "reload"})

    def inject_css(self, paths: list[str]) -> None:
        """Swap the given stylesheets in connected pages without navigation.

        Args:
            paths: URL paths of changed stylesheets (e.g. ``/assets/css/theme.css``).
        """
        self._broadcast({"type": "css", "paths": list(paths)})

    def _broadcast(self, payload: dict) -> None:
        message = json.dumps(payload)
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._clients.discard(ws)

    async def _ws_handler(self, websocket):
        self._clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._clients.discard(websocket)

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except OSError as exc:
            print(f"Live reload server failed to start (port {self.ws_port}): {exc}")
        except RuntimeError:
            # Loop stopped by stop() before the server future resolved.
            pass

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()  # Run forever


class DevServer:
    """Static preview server for the theme directory.

    Attributes:
        project_root: Directory served over HTTP.
        config: Dev-server configuration from nova.yaml.
        http_port: Port for the HTTP server.
        ws_port: Port for the live-reload WebSocket server.
        start_path: Page opened in the browser on start.
        session: Live-reload session shared with the watch rules.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
        start_path: str | None = None,
    ):
        """Initialize the development server.

        Args:
            project_root: Root directory of the theme.
            http_port: Optional override for the HTTP port.
            ws_port: Optional override for the WebSocket port (defaults to
                the HTTP port + 1 when only the HTTP port is overridden).
            start_path: Optional override for the start page.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.http_port = int(http_port or self.config["port"])
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = self.config["ws_port"]
        self.start_path = (start_path or self.config["start_path"]).lstrip("/")
        self.session = LiveReloadSession(self.ws_port)
        self._reload_script = _DevRequestHandler.reload_script_template.format(
            ws_port=self.ws_port
        )
        self._httpd: ThreadingHTTPServer | None = None

    @property
    def url(self) -> str:
        return f"http://localhost:{self.http_port}/{self.start_path}"

    def create_http_server(
        self, host: str = "", port: int | None = None
    ) -> ThreadingHTTPServer:
        """Bind an HTTP server that serves the theme directory.

        Args:
            host: Interface to bind.
            port: Port to bind (defaults to the configured HTTP port).

        Returns:
            The bound, not yet serving, server.
        """
        handler_cls = type(
            "_DevRequestHandlerWithPort",
            (_DevRequestHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.project_root))
        return ThreadingHTTPServer(
            (host, self.http_port if port is None else port), handler
        )

    def start(self, open_browser: bool = False) -> None:  # pragma: no cover - integration path
        self._httpd = self.create_http_server()
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        self.session.start()
        print(f"Serving {self.project_root} at {self.url}")
        if open_browser:
            webbrowser.open(self.url)

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        self.session.stop()
