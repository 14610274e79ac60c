"""Run context: scoped values, cancellation and the helpers built on them."""

from __future__ import annotations

import logging
import threading
from typing import Any

_MISSING = object()

_DRYRUN_KEY = object()
_JOB_ERROR_KEY = object()
_LOGGER_KEY = object()

_DEFAULT_LOGGER_NAME = "actkit"


class ContextCanceled(Exception):
    """Raised when work is attempted on a cancelled context."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class Context:
    """An immutable chain of key/value pairs with optional cancellation scopes."""

    __slots__ = ("_parent", "_key", "_value", "_event")

    def __init__(
        self,
        parent: Context | None = None,
        key: Any = _MISSING,
        value: Any = None,
        event: threading.Event | None = None,
    ) -> None:
        self._parent = parent
        self._key = key
        self._value = value
        self._event = event

    def _chain(self):
        node: Context | None = self
        while node is not None:
            yield node
            node = node._parent

    def with_value(self, key: Any, value: Any) -> Context:
        """Return a child context carrying ``value`` under ``key``."""
        return Context(self, key, value)

    def value(self, key: Any) -> Any:
        """Return the nearest value stored under ``key``, or None."""
        for node in self._chain():
            if node._key is not _MISSING and node._key == key:
                return node._value
        return None

    def with_cancel(self) -> Context:
        """Return a child context that can be cancelled on its own."""
        return Context(self, event=threading.Event())

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        if self._event is None:
            raise ValueError("context was not created with with_cancel()")
        self._event.set()

    def cancelled(self) -> bool:
        """True if this context or any ancestor has been cancelled."""
        return any(node._event is not None and node._event.is_set() for node in self._chain())

    def check(self) -> None:
        """Raise ContextCanceled if the context has been cancelled."""
        if self.cancelled():
            raise ContextCanceled()


def background() -> Context:
    """Return an empty, never-cancelled root context."""
    return Context()


def dryrun(ctx: Context) -> bool:
    """True if the context is in dry-run mode."""
    val = ctx.value(_DRYRUN_KEY)
    return val if isinstance(val, bool) else False


def with_dryrun(ctx: Context, enabled: bool) -> Context:
    """Return a context with the dry-run flag set to ``enabled``."""
    return ctx.with_value(_DRYRUN_KEY, enabled)


def job_error(ctx: Context) -> BaseException | None:
    """Return the job error recorded in the context, if any."""
    container = ctx.value(_JOB_ERROR_KEY)
    if isinstance(container, dict):
        return container.get("error")
    return None


def set_job_error(ctx: Context, err: BaseException | None) -> None:
    """Record ``err`` in the context's job error container."""
    container = ctx.value(_JOB_ERROR_KEY)
    if not isinstance(container, dict):
        raise LookupError("context has no job error container")
    container["error"] = err


def with_job_error_container(ctx: Context) -> Context:
    """Return a context holding a fresh, shared job error container."""
    return ctx.with_value(_JOB_ERROR_KEY, {})


def logger(ctx: Context) -> logging.Logger | logging.LoggerAdapter:
    """Return the logger carried by the context, or the package default."""
    val = ctx.value(_LOGGER_KEY)
    if isinstance(val, (logging.Logger, logging.LoggerAdapter)):
        return val
    return logging.getLogger(_DEFAULT_LOGGER_NAME)


def with_logger(ctx: Context, log: logging.Logger | logging.LoggerAdapter) -> Context:
    """Return a context carrying ``log`` as its logger."""
    return ctx.with_value(_LOGGER_KEY, log)