"""Bug-report text, .gitignore matching and watch-and-rerun support."""

from __future__ import annotations

import os
import platform
import re
import sys
import time
from typing import Callable, Iterable, Optional

from .config import config_locations, read_args_file
from .runctx import Context, logger

_COMMON_SOCKET_PATHS = (
    "/var/run/docker.sock",
    "/var/run/podman/podman.sock",
    "$HOME/.colima/docker.sock",
    "$XDG_RUNTIME_DIR/docker.sock",
    r"\\.\pipe\docker_engine",
    "$HOME/.docker/run/docker.sock",
)

_CHECK_INTERVAL_SECONDS = 2.0
_POLL_STEP_SECONDS = 0.05


def _line(key: str, value: str) -> str:
    return f"{key:<24}{value}\n"


def _expand_socket_path(path: str) -> str:
    if path.startswith("$"):
        var = path.split("/")[0]
        path = path.replace(var, os.environ.get(var[1:], ""), 1)
    return path


def bug_report(version: str) -> str:
    """Print and return a report of system details useful in bug reports."""
    parts = [
        _line("act version:", version),
        _line("OS:", sys.platform),
        _line("Arch:", platform.machine()),
        _line("NumCPU:", str(os.cpu_count() or 0)),
    ]

    docker_host = os.environ.get("DOCKER_HOST", "") or "DOCKER_HOST environment variable is unset/empty."
    parts.append(_line("Docker host:", docker_host))

    parts.append("Sockets found:\n")
    for candidate in _COMMON_SOCKET_PATHS:
        path = _expand_socket_path(candidate)
        try:
            os.stat(path)
        except (OSError, ValueError):
            continue
        parts.append(f"\t{path}\n")

    parts.append(_line("Config files:", ""))
    for location in config_locations():
        lines = read_args_file(location, False)
        if lines:
            parts.append(f"\t{location}:\n")
            parts.extend(f"\t\t{line}\n" for line in lines)

    parts.append("Build info:\n")
    parts.append(_line("\tPython version:", platform.python_version()))
    parts.append(_line("\tImplementation:", platform.python_implementation()))
    parts.append(_line("\tExecutable:", sys.executable))

    report = "".join(parts)
    print(report)
    return report


def _glob_to_regex(pattern: str) -> str:
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == n:
            out.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        else:
            c = pattern[i]
            if c == "*":
                out.append("[^/]*")
            elif c == "?":
                out.append("[^/]")
            elif c == "[":
                end = pattern.find("]", i + 2)
                if end == -1:
                    out.append(re.escape(c))
                else:
                    body = pattern[i + 1 : end]
                    if body.startswith("!"):
                        body = "^" + body[1:]
                    out.append("[" + body.replace("\\", "\\\\") + "]")
                    i = end
            elif c == "\\" and i + 1 < n:
                i += 1
                out.append(re.escape(pattern[i]))
            else:
                out.append(re.escape(c))
            i += 1
    return "".join(out)


class _Rule:
    __slots__ = ("negate", "dir_only", "exact", "under")

    def __init__(self, pattern: str) -> None:
        self.negate = pattern.startswith("!")
        if self.negate:
            pattern = pattern[1:]
        self.dir_only = pattern.endswith("/")
        body = pattern.rstrip("/")
        anchored = "/" in body
        body = body.lstrip("/")
        prefix = "^" if anchored else "^(?:.*/)?"
        regex = prefix + _glob_to_regex(body)
        self.exact = re.compile(regex + "$")
        self.under = re.compile(regex + "/.*$")

    def matches(self, rel: str, is_dir: Callable[[], bool]) -> bool:
        if self.under.match(rel):
            return True
        if self.exact.match(rel):
            return not self.dir_only or is_dir()
        return False


class IgnoreRules:
    """A compiled set of .gitignore patterns; the last matching pattern wins."""

    def __init__(self, patterns: Iterable[str] = (), base_dir: Optional[str] = None) -> None:
        self.base_dir = os.path.abspath(base_dir) if base_dir is not None else None
        self._rules: list[_Rule] = []
        for raw in patterns:
            line = raw.rstrip("\r\n").rstrip(" \t")
            if not line or line.startswith("#") or line in ("!", "/"):
                continue
            self._rules.append(_Rule(line))

    def _relative(self, path: str) -> Optional[str]:
        if self.base_dir is not None and os.path.isabs(path):
            rel = os.path.relpath(path, self.base_dir)
            if rel == os.pardir or rel.startswith(os.pardir + os.sep):
                return None
        else:
            rel = path
        rel = rel.replace(os.sep, "/")
        while rel.startswith("./"):
            rel = rel[2:]
        return rel.strip("/")

    def matches(self, path: str) -> bool:
        """True if ``path`` is ignored by these rules."""
        rel = self._relative(path)
        if not rel or rel == ".":
            return False

        def is_dir() -> bool:
            full = path if os.path.isabs(path) or self.base_dir is None else os.path.join(self.base_dir, path)
            return os.path.isdir(full)

        ignored = False
        for rule in self._rules:
            if rule.matches(rel, is_dir):
                ignored = not rule.negate
        return ignored


def load_ignore_rules(directory: str) -> IgnoreRules:
    """Compile ``directory``/.gitignore, or return rules that ignore nothing."""
    path = os.path.join(directory, ".gitignore")
    try:
        with open(path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except (OSError, UnicodeDecodeError):
        return IgnoreRules((), directory)
    return IgnoreRules(lines, directory)


def _snapshot(directory: str, rules: IgnoreRules) -> dict[str, tuple[int, int]]:
    state: dict[str, tuple[int, int]] = {}
    for root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if not rules.matches(os.path.join(root, d)))
        for name in files:
            path = os.path.join(root, name)
            if rules.matches(path):
                continue
            try:
                info = os.stat(path)
            except OSError:
                continue
            state[path] = (info.st_mtime_ns, info.st_size)
    return state


def _describe_changes(before: dict[str, tuple[int, int]], after: dict[str, tuple[int, int]]) -> str:
    added = sorted(after.keys() - before.keys())
    removed = sorted(before.keys() - after.keys())
    modified = sorted(p for p in after.keys() & before.keys() if after[p] != before[p])
    return f"added={added} removed={removed} modified={modified}"


def _sleep(ctx: Context, seconds: float) -> bool:
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if ctx.cancelled():
            return False
        time.sleep(_POLL_STEP_SECONDS)
    return not ctx.cancelled()


def watch_and_run(ctx: Context, fn: Callable[[Context], object], directory: Optional[str] = None) -> None:
    """Run ``fn`` now and again whenever files under ``directory`` change.

    Files ignored by the directory's .gitignore are not watched. Returns once
    ``ctx`` is cancelled, raising the error ``fn`` raised, if any.
    """
    directory = directory or os.getcwd()
    rules = load_ignore_rules(directory)
    log = logger(ctx)
    error: Optional[BaseException] = None

    previous = _snapshot(directory, rules)
    try:
        fn(ctx)
    except Exception as exc:
        error = exc

    while error is None and not ctx.cancelled():
        log.debug("Watching %s for changes", directory)
        if not _sleep(ctx, _CHECK_INTERVAL_SECONDS):
            break
        current = _snapshot(directory, rules)
        if current == previous:
            continue
        log.debug("%s", _describe_changes(previous, current))
        previous = current
        try:
            fn(ctx)
        except Exception as exc:
            error = exc

    while not ctx.cancelled():
        time.sleep(_POLL_STEP_SECONDS)
    if error is not None:
        raise error