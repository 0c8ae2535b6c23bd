"""Routing and serving for the node's local JSON API."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

log = logging.getLogger(__name__)

DEFAULT_PREFIX = "/api"
JSON_FAILURE = b"json format fail"

Response = tuple[int, bytes]


@dataclass
class ApiRequest:
    """An incoming API request."""

    method: str
    path: str
    query: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""


Handler = Callable[[ApiRequest], Any]


def write_json(data: Any) -> Response:
    """Encode ``data`` as a JSON response; unencodable data gives a 500."""
    try:
        body = json.dumps(data, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError):
        return 500, JSON_FAILURE
    return 200, body


def _normalize(result: Any) -> Response:
    if result is None:
        return 200, b""
    if isinstance(result, bytes):
        return 200, result
    if isinstance(result, str):
        return 200, result.encode("utf-8")
    if isinstance(result, tuple) and len(result) == 2:
        status, body = result
        if isinstance(body, str):
            body = body.encode("utf-8")
        return int(status), bytes(body)
    raise TypeError(f"unsupported handler result: {result!r}")


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address needs a port: {address!r}")
    return host.strip("[]"), int(port)


class ApiRouter:
    """Maps versioned API paths to handlers and serves them over HTTP."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, version: int = 0) -> None:
        self.prefix = prefix
        self.version = version
        self._routes: dict[str, Handler] = {}
        self.server: ThreadingHTTPServer | None = None
        self.ready = threading.Event()

    def route_path(self, pattern: str) -> str:
        """Return the full path under which ``pattern`` is served."""
        return f"{self.prefix}/v{self.version}/{pattern}"

    def handle_api(self, pattern: str, func: Handler) -> None:
        """Register ``func`` for ``pattern``; a pattern may be registered once."""
        path = self.route_path(pattern)
        if path in self._routes:
            raise ValueError(f"multiple registrations for {path}")
        self._routes[path] = func

    def resolve(self, path: str) -> Handler | None:
        """Return the handler for ``path``, or None."""
        return self._routes.get(path)

    def _respond(self, request: ApiRequest) -> Response:
        handler = self.resolve(request.path)
        if handler is None:
            return 404, b"404 page not found\n"
        try:
            return _normalize(handler(request))
        except Exception as exc:  # a failing handler must not take the server down
            log.exception("[api] handler for %s failed", request.path)
            return 500, str(exc).encode("utf-8")

    def serve(self, address: str) -> None:
        """Serve the API at ``address`` (``host:port``) until the server is shut down."""
        host, port = _split_address(address)
        router = self

        class _RequestHandler(BaseHTTPRequestHandler):
            def _dispatch(self) -> None:
                parts = urlsplit(self.path)
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                request = ApiRequest(
                    method=self.command,
                    path=parts.path,
                    query=parse_qs(parts.query),
                    body=body,
                )
                status, payload = router._respond(request)
                self.send_response(status)
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            do_GET = do_POST = do_PUT = do_DELETE = _dispatch

            def log_message(self, fmt: str, *args: Any) -> None:
                log.debug("[api] " + fmt, *args)

        self.server = ThreadingHTTPServer((host, port), _RequestHandler)
        self.ready.set()
        try:
            self.server.serve_forever()
        finally:
            self.server.server_close()