"""Configuration files, argument files and environment loading."""

from __future__ import annotations

import os
import re
import sys
from typing import MutableMapping, Sequence

from dotenv import dotenv_values

_WHITESPACE = re.compile(r"\s")

_IMAGE_OPTIONS = {
    "Large": (
        "-P ubuntu-latest=catthehacker/ubuntu:full-latest\n"
        "-P ubuntu-latest=catthehacker/ubuntu:full-20.04\n"
        "-P ubuntu-18.04=catthehacker/ubuntu:full-18.04\n"
    ),
    "Medium": (
        "-P ubuntu-latest=catthehacker/ubuntu:act-latest\n"
        "-P ubuntu-22.04=catthehacker/ubuntu:act-22.04\n"
        "-P ubuntu-20.04=catthehacker/ubuntu:act-20.04\n"
        "-P ubuntu-18.04=catthehacker/ubuntu:act-18.04\n"
    ),
    "Micro": (
        "-P ubuntu-latest=node:16-buster-slim\n"
        "-P ubuntu-22.04=node:16-bullseye-slim\n"
        "-P ubuntu-20.04=node:16-buster-slim\n"
        "-P ubuntu-18.04=node:16-buster-slim\n"
    ),
}

_SURVEY_MESSAGE = (
    "Please choose the default image you want to use with act:\n\n"
    "  - Large size image: +20GB Docker image, includes almost all tools used on GitHub "
    "Actions (IMPORTANT: currently only ubuntu-18.04 platform is available)\n"
    "  - Medium size image: ~500MB, includes only necessary tools to bootstrap actions "
    "and aims to be compatible with all actions\n"
    "  - Micro size image: <200MB, contains only NodeJS required to bootstrap actions, "
    "doesn't work with all actions\n\n"
    "Default image and other options can be changed manually in ~/.actrc\n"
)
_DEFAULT_ANSWER = "Medium"


def config_locations() -> list[str]:
    """Paths of the .actrc files, in the order they are read."""
    home = os.path.expanduser("~")
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        actrc_xdg = os.path.join(xdg, ".actrc")
    else:
        actrc_xdg = os.path.join(home, ".config", ".actrc")
    return [
        os.path.join(home, ".actrc"),
        actrc_xdg,
        os.path.normpath(os.path.join(".", ".actrc")),
    ]


def read_args_file(file: str, split: bool) -> list[str]:
    """Read arguments from ``file``; a missing file gives none.

    With ``split``, only lines starting with "-" are used, each split into a
    flag and the rest at the first whitespace. Without it every trimmed line
    is returned.
    """
    try:
        with open(file, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except OSError:
        return []
    result: list[str] = []
    for raw in lines:
        arg = raw.strip()
        if split:
            if arg.startswith("-"):
                result.extend(_WHITESPACE.split(arg, maxsplit=1))
        else:
            result.append(arg)
    return result


def args(argv: Sequence[str] | None = None) -> list[str]:
    """Arguments from every config file followed by ``argv``."""
    if argv is None:
        argv = sys.argv[1:]
    collected: list[str] = []
    for location in config_locations():
        collected.extend(read_args_file(location, True))
    collected.extend(argv)
    return collected


def parse_envs(env: Sequence[str] | None, envs: MutableMapping[str, str]) -> bool:
    """Add ``NAME=value`` (or bare ``NAME``) entries to ``envs``.

    Returns False when ``env`` is None.
    """
    if env is None:
        return False
    for entry in env:
        name, _, value = entry.partition("=")
        envs[name] = value
    return True


def read_envs(path: str, envs: MutableMapping[str, str]) -> bool:
    """Add the variables of dotenv file ``path`` to ``envs``.

    Returns False when the file does not exist.
    """
    if not os.path.exists(path):
        return False
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise RuntimeError(f"Error loading from {path}: {exc}") from exc
    for name, value in values.items():
        envs[name] = value if value is not None else ""
    return True


def _ask_image() -> str:
    options = "/".join(_IMAGE_OPTIONS)
    reply = input(f"{_SURVEY_MESSAGE}\n[{options}] (default {_DEFAULT_ANSWER}): ").strip()
    return reply or _DEFAULT_ANSWER


def default_image_survey(actrc: str, answer: str | None = None) -> None:
    """Write the platform images for the chosen size to ``actrc``.

    ``answer`` is one of "Large", "Medium" or "Micro"; when None the user is asked.
    """
    if answer is None:
        answer = _ask_image()
    try:
        option = _IMAGE_OPTIONS[answer]
    except KeyError:
        raise ValueError(
            f"unknown image size {answer!r}; choose one of {', '.join(_IMAGE_OPTIONS)}"
        ) from None
    with open(actrc, "w", encoding="utf-8") as handle:
        handle.write(option)