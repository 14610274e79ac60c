"""Command-line input and the paths and platforms derived from it."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_DEFAULT_PLATFORMS = {
    "ubuntu-latest": "node:16-buster-slim",
    "ubuntu-22.04": "node:16-bullseye-slim",
    "ubuntu-20.04": "node:16-buster-slim",
    "ubuntu-18.04": "node:16-buster-slim",
}


@dataclass
class Input:
    """Options collected from the command line and config files."""

    actor: str = ""
    workdir: str = "."
    workflows_path: str = ""
    autodetect_event: bool = False
    event_path: str = ""
    reuse_containers: bool = False
    bind_workdir: bool = False
    secrets: list[str] = field(default_factory=list)
    envs: list[str] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    dryrun: bool = False
    force_pull: bool = False
    force_rebuild: bool = False
    no_output: bool = False
    envfile: str = ""
    inputfile: str = ""
    secretfile: str = ""
    insecure_secrets: bool = False
    default_branch: str = ""
    privileged: bool = False
    userns_mode: str = ""
    container_architecture: str = ""
    container_daemon_socket: str = ""
    container_options: str = ""
    no_workflow_recurse: bool = False
    use_git_ignore: bool = False
    github_instance: str = ""
    container_cap_add: list[str] = field(default_factory=list)
    container_cap_drop: list[str] = field(default_factory=list)
    auto_remove: bool = False
    artifact_server_path: str = ""
    artifact_server_addr: str = ""
    artifact_server_port: str = ""
    json_logger: bool = False
    no_skip_checkout: bool = False
    remote_name: str = ""
    replace_ghe_action_with_github_com: list[str] = field(default_factory=list)
    replace_ghe_action_token_with_github_com: str = ""

    def resolve(self, path: str) -> str:
        """Resolve ``path`` against the working directory; empty stays empty."""
        basedir = os.path.abspath(self.workdir)
        if path == "":
            return path
        if not os.path.isabs(path):
            path = os.path.normpath(os.path.join(basedir, path))
        return path

    def envfile_path(self) -> str:
        """Path to the environment file."""
        return self.resolve(self.envfile)

    def secretfile_path(self) -> str:
        """Path to the secrets file."""
        return self.resolve(self.secretfile)

    def workdir_path(self) -> str:
        """Absolute path of the working directory."""
        return self.resolve(".")

    def workflows_location(self) -> str:
        """Path to the workflow file or directory."""
        return self.resolve(self.workflows_path)

    def event_file_path(self) -> str:
        """Path to the event JSON file."""
        return self.resolve(self.event_path)

    def inputfile_path(self) -> str:
        """Path to the action input file."""
        return self.resolve(self.inputfile)

    def new_platforms(self) -> dict[str, str]:
        """Default platform images overridden by ``name=image`` entries."""
        platforms = dict(_DEFAULT_PLATFORMS)
        for entry in self.platforms:
            parts = entry.split("=")
            if len(parts) == 2:
                platforms[parts[0]] = parts[1]
        return platforms