"""Composable units of work that run against a Context."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from .runctx import Context, logger


class StepWarning(Exception):
    """An error that is safe to ignore; logged and skipped when chaining."""


def warningf(fmt: str, *args: Any) -> StepWarning:
    """Create a StepWarning with a %-formatted message."""
    return StepWarning(fmt % args if args else fmt)


class Executor:
    """A callable step taking a Context; failure is signalled by raising."""

    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[Context], Any]) -> None:
        self._fn = fn

    def __call__(self, ctx: Context) -> None:
        self._fn(ctx)

    def then(self, then: Callable[[Context], Any]) -> Executor:
        """Run ``then`` after this one succeeds; warnings are logged, not fatal."""

        def run(ctx: Context) -> None:
            try:
                self(ctx)
            except StepWarning as warning:
                logger(ctx).warning(str(warning))
            ctx.check()
            then(ctx)

        return Executor(run)

    def if_(self, conditional: Callable[[Context], bool]) -> Executor:
        """Run only when ``conditional`` is true."""

        def run(ctx: Context) -> None:
            if conditional(ctx):
                self(ctx)

        return Executor(run)

    def if_not(self, conditional: Callable[[Context], bool]) -> Executor:
        """Run only when ``conditional`` is false."""

        def run(ctx: Context) -> None:
            if not conditional(ctx):
                self(ctx)

        return Executor(run)

    def if_bool(self, conditional: bool) -> Executor:
        """Run only when the fixed flag ``conditional`` is true."""
        return self.if_(lambda ctx: conditional)

    def finally_(self, final: Callable[[Context], Any]) -> Executor:
        """Always run ``final`` after this one, keeping the original error."""

        def run(ctx: Context) -> None:
            original: Optional[BaseException] = None
            try:
                self(ctx)
            except Exception as exc:
                original = exc
            try:
                final(ctx)
            except Exception as exc:
                raise RuntimeError(
                    f"Error occurred running finally: {exc} (original error: {original})"
                ) from exc
            if original is not None:
                raise original

        return Executor(run)


class Conditional:
    """A predicate over a Context."""

    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[Context], bool]) -> None:
        self._fn = fn

    def __call__(self, ctx: Context) -> bool:
        return bool(self._fn(ctx))

    def not_(self) -> Conditional:
        """Return the inverted predicate."""
        return Conditional(lambda ctx: not self(ctx))


def _as_executor(fn: Callable[[Context], Any]) -> Executor:
    return fn if isinstance(fn, Executor) else Executor(fn)


def new_info_executor(fmt: str, *args: Any) -> Executor:
    """An executor that logs a message at info level."""
    return Executor(lambda ctx: logger(ctx).info(fmt, *args))


def new_debug_executor(fmt: str, *args: Any) -> Executor:
    """An executor that logs a message at debug level."""
    return Executor(lambda ctx: logger(ctx).debug(fmt, *args))


def new_pipeline_executor(*executors: Callable[[Context], Any]) -> Executor:
    """Chain executors so each runs after the previous one succeeds."""
    if not executors:
        return Executor(lambda ctx: None)
    pipeline = _as_executor(executors[0])
    for executor in executors[1:]:
        pipeline = pipeline.then(executor)
    return pipeline


def new_conditional_executor(
    conditional: Callable[[Context], bool],
    true_executor: Optional[Callable[[Context], Any]],
    false_executor: Optional[Callable[[Context], Any]],
) -> Executor:
    """Run one of two executors depending on ``conditional``; either may be None."""

    def run(ctx: Context) -> None:
        chosen = true_executor if conditional(ctx) else false_executor
        if chosen is not None:
            chosen(ctx)

    return Executor(run)


def new_error_executor(err: BaseException) -> Executor:
    """An executor that always raises ``err``."""

    def run(ctx: Context) -> None:
        logger(ctx).debug("executor failing with: %s", err)
        raise err

    return Executor(run)


def new_parallel_executor(parallel: int, *executors: Callable[[Context], Any]) -> Executor:
    """Run executors with at most ``parallel`` at once.

    All executors run to completion. A cancelled context wins over executor
    errors; otherwise the first error to arrive is raised.
    """
    if parallel < 1:
        raise ValueError("parallel must be at least 1")

    def run(ctx: Context) -> None:
        first_error: Optional[BaseException] = None
        if executors:
            with ThreadPoolExecutor(max_workers=parallel) as pool:
                futures = [pool.submit(executor, ctx) for executor in executors]
                for future in as_completed(futures):
                    err = future.exception()
                    if first_error is None and err is not None:
                        first_error = err
        ctx.check()
        if first_error is not None:
            raise first_error

    return Executor(run)