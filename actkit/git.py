"""Git helpers: revision and ref lookup, remote slugs and cached clones."""

from __future__ import annotations

import base64
import logging
import os
import re
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Sequence

from .executor import Executor
from .runctx import Context, logger

_CODECOMMIT_HTTP = re.compile(r"^https?://git-codecommit\.(.+)\.amazonaws.com/v1/repos/(.+)$")
_CODECOMMIT_SSH = re.compile(r"ssh://git-codecommit\.(.+)\.amazonaws.com/v1/repos/(.+)$")
_GITHUB_HTTP = re.compile(r"^https?://.*github.com.*/(.+)/(.+?)(?:.git)?$")
_GITHUB_SSH = re.compile(r"github.com[:/](.+)/(.+?)(?:.git)?$")

_clone_lock = threading.Lock()


class GitError(Exception):
    """A git operation failed; ``commit`` names the commit involved, if any."""

    def __init__(self, message: str, commit: str | None = None) -> None:
        super().__init__(message)
        self.commit = commit


class ShortRefError(GitError):
    """A short SHA was given where a full commit hash is required."""

    def __init__(self, commit: str) -> None:
        super().__init__("short SHA references are not supported", commit)


@dataclass
class CloneInput:
    """What to clone, which ref to check out and where to put it."""

    url: str
    ref: str
    dir: str
    token: str = ""


def _auth_args(token: str) -> list[str]:
    if not token:
        return []
    credentials = base64.b64encode(f"token:{token}".encode()).decode()
    return ["-c", f"http.extraHeader=Authorization: Basic {credentials}"]


def _run_git(args: Sequence[str], cwd: str | None = None, token: str = "") -> str:
    env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
    try:
        proc = subprocess.run(
            ["git", *_auth_args(token), *args],
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise GitError(str(exc)) from exc
    if proc.returncode != 0:
        message = proc.stderr.strip() or f"git {args[0]} exited with status {proc.returncode}"
        raise GitError(message)
    return proc.stdout


def _repo_dir(file: str | os.PathLike) -> str:
    path = os.fspath(file)
    return path if os.path.isdir(path) else os.path.dirname(path) or "."


def _open_repo(file: str | os.PathLike) -> str:
    directory = _repo_dir(file)
    if not os.path.isdir(directory):
        raise GitError("unable to find git repo")
    try:
        _run_git(["rev-parse", "--git-dir"], cwd=directory)
    except GitError as exc:
        raise GitError("unable to find git repo") from exc
    return directory


def _resolve(directory: str, rev: str) -> str | None:
    try:
        out = _run_git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], cwd=directory)
    except GitError:
        return None
    return out.strip() or None


def _ref_exists(directory: str, ref: str) -> bool:
    try:
        _run_git(["show-ref", "--verify", "--quiet", ref], cwd=directory)
    except GitError:
        return False
    return True


def find_git_revision(ctx: Context, file: str | os.PathLike) -> tuple[str, str]:
    """Return the short and full SHA of HEAD for the repo containing ``file``."""
    log = logger(ctx)
    try:
        directory = _open_repo(file)
    except GitError as exc:
        log.error("path %s not located inside a git repository: %s", file, exc)
        raise
    try:
        sha = _run_git(["rev-parse", "--verify", "--quiet", "HEAD"], cwd=directory).strip()
    except GitError as exc:
        raise GitError("HEAD sha1 could not be resolved") from exc
    if not sha:
        raise GitError("HEAD sha1 could not be resolved")
    log.debug("Found revision: %s", sha)
    return sha[:7], sha


def find_git_ref(ctx: Context, file: str | os.PathLike) -> str:
    """Return the tag or branch ref checked out at HEAD; tags take precedence."""
    log = logger(ctx)
    log.debug("Loading revision from git directory")
    _, ref = find_git_revision(ctx, file)
    log.debug("HEAD points to '%s'", ref)

    directory = _open_repo(file)
    listing = _run_git(["for-each-ref", "--format=%(objectname) %(refname)"], cwd=directory)

    ref_tag = ""
    ref_branch = ""
    for line in listing.splitlines():
        obj, _, name = line.partition(" ")
        if obj == ref:
            if name.startswith("refs/tags/"):
                ref_tag = name
            if name.startswith("refs/heads/"):
                ref_branch = name
        if ref_tag and ref_branch:
            break

    if ref_tag:
        return ref_tag
    if ref_branch:
        return ref_branch
    raise GitError(
        f"failed to identify reference (tag/branch) for the checked-out revision '{ref}'"
    )


def find_github_repo(
    ctx: Context, file: str | os.PathLike, github_instance: str, remote_name: str = "origin"
) -> str:
    """Return the ``owner/repo`` slug of the given remote."""
    url = find_git_remote_url(ctx, file, remote_name or "origin")
    _, slug = find_git_slug(url, github_instance)
    return slug


def find_git_remote_url(ctx: Context, file: str | os.PathLike, remote_name: str) -> str:
    """Return the first URL configured for ``remote_name``."""
    directory = _open_repo(file)
    remotes = _run_git(["remote"], cwd=directory).split()
    if remote_name not in remotes:
        raise GitError("remote not found")
    try:
        urls = _run_git(["config", "--get-all", f"remote.{remote_name}.url"], cwd=directory)
    except GitError:
        urls = ""
    found = urls.splitlines()
    if not found:
        raise GitError(f"remote '{remote_name}' exists but has no URL")
    return found[0]


def find_git_slug(url: str, github_instance: str) -> tuple[str, str]:
    """Return the hosting provider and repository slug for ``url``.

    Unknown URLs yield an empty provider and the URL itself as slug.
    """
    if m := _CODECOMMIT_HTTP.search(url):
        return "CodeCommit", m.group(2)
    if m := _CODECOMMIT_SSH.search(url):
        return "CodeCommit", m.group(2)
    if m := _GITHUB_HTTP.search(url):
        return "GitHub", f"{m.group(1)}/{m.group(2)}"
    if m := _GITHUB_SSH.search(url):
        return "GitHub", f"{m.group(1)}/{m.group(2)}"
    if github_instance != "github.com":
        ghe_http = re.compile(rf"^https?://{github_instance}/(.+)/(.+?)(?:.git)?$")
        ghe_ssh = re.compile(rf"{github_instance}[:/](.+)/(.+?)(?:.git)?$")
        if m := ghe_http.search(url):
            return "GitHubEnterprise", f"{m.group(1)}/{m.group(2)}"
        if m := ghe_ssh.search(url):
            return "GitHubEnterprise", f"{m.group(1)}/{m.group(2)}"
    return "", url


def clone_if_required(
    ctx: Context, ref_name: str, clone_input: CloneInput, log: logging.Logger | logging.LoggerAdapter
) -> str:
    """Clone ``clone_input.url`` unless a repo already exists; return its directory."""
    if os.path.exists(os.path.join(clone_input.dir, ".git")):
        return clone_input.dir

    ctx.check()
    show_progress = sys.stdout.isatty()
    args = ["clone"]
    if show_progress:
        args.append("--progress")
    args += [clone_input.url, clone_input.dir]
    try:
        output = _run_git(args, token=clone_input.token)
    except GitError as exc:
        log.error("Unable to clone %s %s: %s", clone_input.url, ref_name, exc)
        raise
    if show_progress:
        for line in output.splitlines():
            log.debug("%s", line)
    os.chmod(clone_input.dir, 0o755)
    return clone_input.dir


def new_git_clone_executor(clone_input: CloneInput) -> Executor:
    """An executor that clones or updates a repo and checks out ``clone_input.ref``."""

    def run(ctx: Context) -> None:
        log = logger(ctx)
        log.info("  \u2601  git clone '%s' # ref=%s", clone_input.url, clone_input.ref)
        log.debug("  cloning %s to %s", clone_input.url, clone_input.dir)

        with _clone_lock:
            ref = clone_input.ref
            ref_name = f"refs/heads/{ref}"
            directory = clone_if_required(ctx, ref_name, clone_input, log)
            token = clone_input.token

            _run_git(
                ["fetch", "--update-head-ok", "origin", "refs/*:refs/*"],
                cwd=directory,
                token=token,
            )

            hash_ = _resolve(directory, ref)
            if hash_ is None:
                log.error("Unable to resolve %s", ref)
            elif hash_ != ref and hash_.startswith(ref):
                raise ShortRefError(hash_)

            remote_branch = f"refs/remotes/origin/{ref}"
            if _ref_exists(directory, f"refs/tags/{ref}"):
                ref_type, rev = "tag", f"refs/tags/{ref}"
            elif _ref_exists(directory, remote_branch):
                ref_type, rev = "branch", remote_branch
            else:
                ref_type, rev = "sha", ref

            hash_ = _resolve(directory, rev)
            if hash_ is None:
                log.error("Unable to resolve %s", ref)
                raise GitError(f"unable to resolve {ref}")

            if hash_ != ref and ref_type == "branch":
                log.debug("Provided ref is not a sha. Checking out branch before pulling changes")
                try:
                    _run_git(["checkout", "--force", remote_branch], cwd=directory)
                except GitError as exc:
                    log.error("Unable to checkout %s: %s", remote_branch, exc)
                    raise

            try:
                _run_git(["pull", "--force", "--ff-only"], cwd=directory, token=token)
            except GitError as exc:
                log.debug("Unable to pull %s: %s", ref_name, exc)
            log.debug("Cloned %s to %s", clone_input.url, clone_input.dir)

            if hash_ != ref and ref_type == "branch":
                log.debug("Provided ref is not a sha. Updating branch ref after pull")
                hash_ = _resolve(directory, rev)
                if hash_ is None:
                    log.error("Unable to resolve %s", ref)
                    raise GitError(f"unable to resolve {ref}")

            try:
                _run_git(["checkout", "--force", hash_], cwd=directory)
            except GitError as exc:
                log.error("Unable to checkout %s: %s", hash_, exc)
                raise
            try:
                _run_git(["reset", "--hard", hash_], cwd=directory)
            except GitError as exc:
                log.error("Unable to reset to %s: %s", hash_, exc)
                raise

            log.debug("Checked out %s", ref)

    return Executor(run)