"""A writer that hands complete lines to a chain of handlers."""

from __future__ import annotations

from typing import Callable

LineHandler = Callable[[str], bool]


class LineWriter:
    """Buffers written data and calls handlers once per complete line.

    Handlers run in order for each line; a handler returning a false value
    stops the chain for that line.
    """

    def __init__(self, *handlers: LineHandler) -> None:
        self._handlers = handlers
        self._buffer = bytearray()

    def write(self, data: bytes | str) -> int:
        """Accept ``data`` and return how much was written."""
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._buffer.extend(chunk)
        while (end := self._buffer.find(b"\n")) != -1:
            line = bytes(self._buffer[: end + 1])
            del self._buffer[: end + 1]
            self._handle(line.decode("utf-8", errors="replace"))
        return len(data)

    def _handle(self, line: str) -> None:
        for handler in self._handlers:
            if not handler(line):
                break