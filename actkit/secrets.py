"""Building the secrets map from command-line entries."""

from __future__ import annotations

import getpass
import logging
import os
from typing import Callable, Iterable, Optional

_log = logging.getLogger(__name__)


def _ask(name: str) -> str:
    return getpass.getpass(f"Provide value for '{name}': ")


def new_secrets(
    secret_list: Iterable[str], prompt: Optional[Callable[[str], str]] = None
) -> dict[str, str]:
    """Build secrets from ``NAME=value`` or bare ``NAME`` entries.

    Names are upper-cased. A bare name takes its value from a non-empty
    environment variable of that name, otherwise from ``prompt``.
    """
    ask = prompt if prompt is not None else _ask
    secrets: dict[str, str] = {}
    for pair in secret_list:
        name, sep, value = pair.partition("=")
        name = name.upper()
        if name in secrets:
            _log.error("Secret %s is already defined (secrets are case insensitive)", name)
        if sep:
            secrets[name] = value
        elif os.environ.get(name):
            secrets[name] = os.environ[name]
        else:
            secrets[name] = ask(name)
    return secrets