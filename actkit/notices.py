"""Version notices fetched from the notice service, with ETag caching."""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable
from urllib.parse import urlencode

NOTICE_URL = "https://api.nektosact.com/notices"

_TIMEOUT_SECONDS = 10
_log = logging.getLogger(__name__)

# Severity order: lower is more severe. Notices above "info" are not shown.
_LEVELS = {
    "panic": (0, "panic"),
    "fatal": (1, "fatal"),
    "error": (2, "error"),
    "warn": (3, "warning"),
    "warning": (3, "warning"),
    "info": (4, "info"),
    "debug": (5, "debug"),
    "trace": (6, "trace"),
}
_INFO = _LEVELS["info"]

_ARCHES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


@dataclass(frozen=True)
class Notice:
    """A message from the notice service, with its log level."""

    level: str
    message: str


def _host_os() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform in ("win32", "cygwin"):
        return "windows"
    return sys.platform


def _host_arch() -> str:
    machine = platform.machine().lower()
    return _ARCHES.get(machine, machine)


def etag_path() -> str:
    """Path of the cached notices ETag, creating its directory if needed."""
    cache = os.environ.get("XDG_CACHE_HOME", "")
    if not cache:
        home = os.path.expanduser("~")
        cache = os.path.join(home, ".cache") if home != "~" else os.path.abspath(".")
    directory = os.path.join(cache, "act")
    os.makedirs(directory, exist_ok=True)
    return os.path.join(directory, ".notices.etag")


def load_notices_etag() -> str:
    """Return the cached ETag, or an empty string if there is none."""
    path = etag_path()
    try:
        with open(path, encoding="utf-8") as handle:
            content = handle.read()
    except OSError as exc:
        _log.debug("Unable to load etag from %s: %s", path, exc)
        content = ""
    return content.removesuffix("\n")


def save_notices_etag(etag: str) -> None:
    """Cache ``etag`` in a file readable only by the owner."""
    path = etag_path()
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(etag.removesuffix("\n"))
    except OSError as exc:
        _log.debug("Unable to save etag to %s: %s", path, exc)


def _decode_notices(body: bytes) -> list[Notice]:
    data = json.loads(body)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("notices must be a list of objects")
    return [
        Notice(level=str(item.get("level", "")), message=str(item.get("message", "")))
        for item in data
    ]


def get_version_notices(version: str) -> list[Notice] | None:
    """Fetch notices for ``version``; None when disabled, unchanged or failing."""
    if os.environ.get("ACT_DISABLE_VERSION_CHECK") == "1":
        return None

    query = urlencode(sorted({"os": _host_os(), "arch": _host_arch(), "version": version}.items()))
    request = urllib.request.Request(f"{NOTICE_URL}?{query}", method="GET")

    etag = load_notices_etag()
    if etag:
        _log.debug("Conditional GET for notices etag=%s", etag)
        request.add_header("If-None-Match", etag)

    try:
        with urllib.request.urlopen(request, timeout=_TIMEOUT_SECONDS) as response:
            status, headers, body = response.status, response.headers, response.read()
    except urllib.error.HTTPError as exc:
        status, headers = exc.code, exc.headers
        body = b"" if exc.code == 304 else exc.read()
    except (OSError, ValueError) as exc:
        _log.debug("%s", exc)
        return None

    new_etag = headers.get("Etag") if headers is not None else None
    if new_etag:
        _log.debug("Saving notices etag=%s", new_etag)
        save_notices_etag(new_etag)

    if status == 304:
        _log.debug("No new notices")
        return None
    try:
        return _decode_notices(body)
    except ValueError as exc:
        _log.debug("%s", exc)
        return None


def display_notices(notices: Iterable[Notice] | None, json_logger: bool) -> None:
    """Print notices as log lines on stderr, preceded by a blank line on stdout."""
    notices = list(notices or [])
    if not notices:
        return
    sys.stdout.write("\n")
    sys.stdout.flush()
    for notice in notices:
        severity, name = _LEVELS.get(notice.level.strip().lower(), _INFO)
        if severity > _INFO[0]:
            continue
        if json_logger:
            stamp = datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")
            line = json.dumps({"level": name, "msg": notice.message, "time": stamp})
        else:
            line = f"level={name} msg={notice.message}"
        sys.stderr.write(line + "\n")
    sys.stderr.flush()