"""Artifact upload and download service backed by a filesystem."""

from __future__ import annotations

import errno
import json
import logging
import os
import re
import shutil
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Mapping, Protocol
from urllib.parse import parse_qs, unquote, urlsplit

from .runctx import Context, logger

_GZIP_EXTENSION = ".gz__"

_WORKFLOW_ARTIFACTS = re.compile(r"^/_apis/pipelines/workflows/(?P<run_id>[^/]+)/artifacts$")
_UPLOAD = re.compile(r"^/upload/(?P<run_id>[^/]+)$")
_DOWNLOAD = re.compile(r"^/download/(?P<container>[^/]+)$")
_ARTIFACT = re.compile(r"^/artifact/(?P<path>.*)$")

_log = logging.getLogger(__name__)


def safe_resolve(base_dir: str, rel_path: str) -> str:
    """Join ``rel_path`` under ``base_dir`` without letting it escape."""
    cleaned = os.path.normpath(os.path.join(os.sep, rel_path))
    return os.path.normpath(os.path.join(base_dir, cleaned.lstrip(os.sep)))


class _ArtifactFS(Protocol):
    def open(self, name: str) -> BinaryIO: ...

    def open_writable(self, name: str) -> BinaryIO: ...

    def open_appendable(self, name: str) -> BinaryIO: ...

    def read_dir(self, name: str) -> list[str]: ...

    def walk_files(self, root: str) -> Iterable[str]: ...


def _make_parent(name: str) -> None:
    parent = os.path.dirname(name)
    if parent:
        os.makedirs(parent, exist_ok=True)


class LocalFS:
    """Artifact storage on the local disk."""

    def open(self, name: str) -> BinaryIO:
        """Open ``name`` for reading."""
        return open(name, "rb")

    def open_writable(self, name: str) -> BinaryIO:
        """Create or truncate ``name`` for writing, creating parent directories."""
        _make_parent(name)
        return open(name, "wb")

    def open_appendable(self, name: str) -> BinaryIO:
        """Open ``name`` for appending, creating it and its parents if needed."""
        _make_parent(name)
        return open(name, "ab")

    def read_dir(self, name: str) -> list[str]:
        """Return the sorted names of the entries in directory ``name``."""
        return sorted(os.listdir(name))

    def walk_files(self, root: str) -> Iterator[str]:
        """Yield every non-directory path under ``root`` in lexical order.

        A ``root`` that is itself a file is yielded as is.
        """
        if not os.path.isdir(root):
            if not os.path.lexists(root):
                raise FileNotFoundError(errno.ENOENT, "no such file or directory", root)
            yield root
            return
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                yield from self.walk_files(entry.path)
            else:
                yield entry.path


@dataclass
class ArtifactResponse:
    """Status, body and headers produced by the artifact router."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class _Request:
    host: str
    query: dict[str, list[str]]
    headers: dict[str, str]
    body: Any

    def query_value(self, name: str) -> str:
        return self.query.get(name, [""])[0]


def _json_response(payload: Any) -> ArtifactResponse:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return ArtifactResponse(200, body, {"Content-Type": "application/json"})


class ArtifactRouter:
    """Routes artifact API requests to handlers working on a filesystem."""

    def __init__(self, base_dir: str, fsys: _ArtifactFS | None = None) -> None:
        self.base_dir = base_dir
        self.fsys = fsys if fsys is not None else LocalFS()
        self._routes: list[tuple[str, re.Pattern[str], Callable[..., ArtifactResponse]]] = [
            ("POST", _WORKFLOW_ARTIFACTS, self._prepare_upload),
            ("PATCH", _WORKFLOW_ARTIFACTS, self._finalize_upload),
            ("GET", _WORKFLOW_ARTIFACTS, self._list_artifacts),
            ("PUT", _UPLOAD, self._upload),
            ("GET", _DOWNLOAD, self._list_container),
            ("GET", _ARTIFACT, self._download),
        ]

    def handle(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | BinaryIO | None = None,
    ) -> ArtifactResponse:
        """Dispatch one request and return the response to send."""
        parts = urlsplit(url)
        path = unquote(parts.path)
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        request = _Request(
            host=lowered.get("host") or parts.netloc,
            query=parse_qs(parts.query, keep_blank_values=True),
            headers=lowered,
            body=body,
        )
        method = method.upper()
        path_known = False
        for route_method, pattern, handler in self._routes:
            match = pattern.match(path)
            if match is None:
                continue
            if route_method != method:
                path_known = True
                continue
            try:
                return handler(request, **match.groupdict())
            except (OSError, ValueError) as exc:
                _log.error("artifact request %s %s failed: %s", method, path, exc)
                return ArtifactResponse(500, json.dumps({"message": str(exc)}).encode("utf-8"))
        if path_known:
            return ArtifactResponse(405, b"Method Not Allowed\n")
        return ArtifactResponse(404, b"404 page not found\n")

    def _prepare_upload(self, req: _Request, run_id: str) -> ArtifactResponse:
        return _json_response({"fileContainerResourceUrl": f"http://{req.host}/upload/{run_id}"})

    def _finalize_upload(self, req: _Request, run_id: str) -> ArtifactResponse:
        return _json_response({"message": "success"})

    def _upload(self, req: _Request, run_id: str) -> ArtifactResponse:
        item_path = req.query_value("itemPath")
        if req.headers.get("content-encoding") == "gzip":
            item_path += _GZIP_EXTENSION
        safe_path = safe_resolve(safe_resolve(self.base_dir, run_id), item_path)

        content_range = req.headers.get("content-range", "")
        if content_range and not content_range.startswith("bytes 0-"):
            opener = self.fsys.open_appendable
        else:
            opener = self.fsys.open_writable

        with opener(safe_path) as target:
            if req.body is None:
                raise ValueError("No body given")
            if hasattr(req.body, "read"):
                shutil.copyfileobj(req.body, target)
            else:
                target.write(req.body)
        return _json_response({"message": "success"})

    def _list_artifacts(self, req: _Request, run_id: str) -> ArtifactResponse:
        safe_path = safe_resolve(self.base_dir, run_id)
        url = f"http://{req.host}/download/{run_id}"
        entries = [
            {"name": name, "fileContainerResourceUrl": url}
            for name in self.fsys.read_dir(safe_path)
        ]
        return _json_response({"count": len(entries), "value": entries or None})

    def _list_container(self, req: _Request, container: str) -> ArtifactResponse:
        item_path = req.query_value("itemPath")
        safe_path = safe_resolve(self.base_dir, container + os.sep + item_path)
        files = []
        for path in self.fsys.walk_files(safe_path):
            rel = os.path.relpath(path, safe_path).removesuffix(_GZIP_EXTENSION)
            files.append(
                {
                    "path": os.path.normpath(os.path.join(item_path, rel)),
                    "itemType": "file",
                    "contentLocation": f"http://{req.host}/artifact/{container}/{item_path}/{rel}",
                }
            )
        return _json_response({"value": files or None})

    def _download(self, req: _Request, path: str) -> ArtifactResponse:
        safe_path = safe_resolve(self.base_dir, path)
        headers: dict[str, str] = {}
        try:
            source = self.fsys.open(safe_path)
        except OSError:
            source = self.fsys.open(safe_path + _GZIP_EXTENSION)
            headers["Content-Encoding"] = "gzip"
        with source:
            data = source.read()
        return ArtifactResponse(200, data, headers)


def _make_handler(router: ArtifactRouter) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def _dispatch(self) -> None:
            length = self.headers.get("Content-Length")
            body = self.rfile.read(int(length)) if length else b""
            response = router.handle(self.command, self.path, dict(self.headers.items()), body)
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            self.wfile.write(response.body)

        do_GET = do_POST = do_PUT = do_PATCH = _dispatch

        def log_message(self, format: str, *args: Any) -> None:
            _log.debug(format, *args)

    return _Handler


def serve(ctx: Context, artifact_path: str, addr: str, port: str | int) -> Callable[[], None]:
    """Start the artifact server in the background and return its stop function.

    Nothing is started when ``artifact_path`` is empty. The server also stops
    when ``ctx`` is cancelled.
    """
    server_ctx = ctx.with_cancel()
    log = logger(server_ctx)
    if not artifact_path:
        return server_ctx.cancel

    log.debug("Artifacts base path '%s'", artifact_path)
    router = ArtifactRouter(artifact_path, LocalFS())
    server = ThreadingHTTPServer((addr, int(port)), _make_handler(router))
    server.daemon_threads = True
    stop = threading.Event()

    def run() -> None:
        log.info("Start server on http://%s:%s", addr, port)
        server.serve_forever()

    def watch() -> None:
        while not stop.wait(0.1):
            if server_ctx.cancelled():
                break
        server.shutdown()
        server.server_close()

    def cancel() -> None:
        server_ctx.cancel()
        stop.set()

    threading.Thread(target=run, daemon=True).start()
    threading.Thread(target=watch, daemon=True).start()
    return cancel