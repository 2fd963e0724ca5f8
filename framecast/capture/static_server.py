"""Loopback static file server that hosts a local entry page for capture."""

from __future__ import annotations

import logging
import re
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

logger = logging.getLogger(__name__)

MIME_TYPES: dict[str, str] = {
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".mjs": "text/javascript; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".map": "application/json; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".glsl": "text/plain; charset=utf-8",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".wasm": "application/wasm",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

# serve_forever poll; bounds how long close() blocks the caller
POLL_INTERVAL = 0.05

# "bundle.js:12:40" style suffixes that devtools and source maps append
_LINE_COLUMN_SUFFIX = re.compile(r":\d+(?::\d+)?$")


def content_type_for(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower(), DEFAULT_MIME_TYPE)


def strip_line_column_suffix(segment: str) -> str | None:
    """Return *segment* without a trailing ``:line[:column]``, or None if it has none."""
    stripped = _LINE_COLUMN_SUFFIX.sub("", segment)
    if stripped == segment or not stripped:
        return None
    return stripped


class _Forbidden(Exception):
    pass


def resolve_request_path(root: Path, raw_path: str) -> Path | None:
    """Map a request path to a file under *root*.

    Raises _Forbidden for traversal attempts; returns None when nothing exists.
    """
    path = unquote(urlsplit(raw_path).path)
    segments = [s for s in path.replace("\\", "/").split("/") if s]
    if any(s == ".." or "\x00" in s for s in segments):
        raise _Forbidden(path)

    candidates = [segments]
    if segments:
        stripped = strip_line_column_suffix(segments[-1])
        if stripped is not None:
            candidates.append(segments[:-1] + [stripped])

    for parts in candidates:
        try:
            target = root.joinpath(*parts).resolve()
        except (OSError, RuntimeError):  # symlink loops
            continue
        if target != root and root not in target.parents:
            raise _Forbidden(path)
        if target.is_dir():
            target = target / "index.html"
        if target.is_file():
            return target
    return None


class _EntryRequestHandler(BaseHTTPRequestHandler):
    server_version = "framecast-static"
    root: Path  # bound per server via a subclass

    def do_GET(self) -> None:  # noqa: N802
        self._serve(include_body=True)

    def do_HEAD(self) -> None:  # noqa: N802
        self._serve(include_body=False)

    def _method_not_allowed(self) -> None:
        self.send_response(HTTPStatus.METHOD_NOT_ALLOWED)
        self.send_header("Allow", "GET, HEAD")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def send_error(self, code, message=None, explain=None) -> None:
        # Unknown methods land here as 501 from BaseHTTPRequestHandler
        if code == HTTPStatus.NOT_IMPLEMENTED:
            self._method_not_allowed()
            return
        super().send_error(code, message, explain)

    def _send_status(self, status: HTTPStatus, include_body: bool) -> None:
        body = f"{status.value} {status.phrase}\n".encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _serve(self, include_body: bool) -> None:
        try:
            target = resolve_request_path(self.root, self.path)
        except _Forbidden:
            logger.debug("Rejected traversal request: %s", self.path)
            self._send_status(HTTPStatus.FORBIDDEN, include_body)
            return
        if target is None:
            self._send_status(HTTPStatus.NOT_FOUND, include_body)
            return

        data = target.read_bytes()
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", content_type_for(target))
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if include_body:
            self.wfile.write(data)

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("static %s - %s", self.address_string(), format % args)


class StaticEntryServer:
    """Serves the directory containing an entry file on an ephemeral loopback port.

    Use as a context manager so the socket is released whatever happens::

        with StaticEntryServer(entry) as server:
            await page.goto(server.entry_url)
    """

    def __init__(self, entry: str | Path, host: str = "127.0.0.1"):
        self.entry = Path(entry).resolve()
        self.root = self.entry.parent
        self.host = host
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> "StaticEntryServer":
        if self._httpd is not None:
            return self
        handler = type("_BoundHandler", (_EntryRequestHandler,), {"root": self.root})
        self._httpd = ThreadingHTTPServer((self.host, 0), handler)
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(
            target=self._httpd.serve_forever, kwargs={"poll_interval": POLL_INTERVAL},
            name="framecast-static", daemon=True,
        )
        self._thread.start()
        logger.debug("Static server for %s listening on %s", self.root, self.base_url)
        return self

    @property
    def port(self) -> int:
        if self._httpd is None:
            raise RuntimeError("Static server is not running")
        return self._httpd.server_address[1]

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def entry_url(self) -> str:
        return self.url_for(self.entry)

    def url_for(self, path: str | Path) -> str:
        rel = Path(path).resolve().relative_to(self.root)
        return f"{self.base_url}/{quote(rel.as_posix())}"

    def close(self) -> None:
        httpd, self._httpd = self._httpd, None
        if httpd is None:
            return
        try:
            httpd.shutdown()
        finally:
            httpd.server_close()
            if self._thread is not None:
                self._thread.join(timeout=5)
                self._thread = None
        logger.debug("Static server for %s closed", self.root)

    def __enter__(self) -> "StaticEntryServer":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()
