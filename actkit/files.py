"""File copying and network address helpers."""

from __future__ import annotations

import ipaddress
import os
import shutil
import socket


def copy_file(source: str | os.PathLike, dest: str | os.PathLike) -> None:
    """Copy the contents of ``source`` to ``dest``, replacing it."""
    shutil.copyfile(source, dest)


def copy_dir(source: str | os.PathLike, dest: str | os.PathLike) -> None:
    """Recursively copy a directory.

    Failures for individual entries are printed and copying goes on; the
    last such failure is raised once everything possible has been copied.
    """
    info = os.stat(source)
    os.makedirs(dest, mode=info.st_mode & 0o7777, exist_ok=True)
    last_error: OSError | None = None
    with os.scandir(source) as entries:
        for entry in entries:
            target = os.path.join(dest, entry.name)
            try:
                if entry.is_dir(follow_symlinks=False):
                    copy_dir(entry.path, target)
                else:
                    copy_file(entry.path, target)
            except OSError as exc:
                print(exc)
                last_error = exc
    if last_error is not None:
        raise last_error


def get_outbound_ip() -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Return the preferred outbound IP address of this machine."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.connect(("8.8.8.8", 80))
        return ipaddress.ip_address(sock.getsockname()[0])