"""
Caller-side scheduling for conversions.

The conversion core is pure and CPU-bound, so async callers run it in a
worker thread. Rapid edits are coalesced with a quiet period and only the
newest result is delivered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from .config import ProjectOptions
from .models import ConversionResult, SettingsRecord
from .pipeline import convert

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_QUIET_PERIOD = 1.0


async def convert_async(
    mesh_bytes: bytes,
    settings: SettingsRecord | Mapping[str, Any],
    original_filename: str,
    options: ProjectOptions | None = None,
) -> ConversionResult:
    """Run ``convert`` in a worker thread. Cancelling the await discards the result."""
    return await asyncio.to_thread(convert, mesh_bytes, settings, original_filename, options)


class LatestRequestRunner(Generic[T]):
    """
    Debounce bursts of requests and deliver only the newest result.

    Each ``submit`` restarts the quiet period; when it elapses, the last
    submitted arguments are run. If runs overlap, a result is delivered only
    when it comes from the most recently started run. Errors from the newest
    run go to ``on_error`` (or are logged); errors from stale runs are dropped.

    Usage:
        runner = LatestRequestRunner(recompute, on_result=show)
        runner.submit(settings_v1)
        runner.submit(settings_v2)   # only v2 runs
        await runner.wait()
    """

    def __init__(
        self,
        func: Callable[..., Awaitable[T]],
        on_result: Callable[[T], None],
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self._func = func
        self._on_result = on_result
        self._on_error = on_error
        self.quiet_period = quiet_period
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> bool:
        return self._timer is not None or bool(self._tasks)

    def submit(self, *args: Any, **kwargs: Any) -> None:
        """Schedule a run with these arguments, superseding earlier submissions."""
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._idle.clear()
        self._timer = loop.call_later(self.quiet_period, self._start, args, kwargs)

    def cancel(self) -> None:
        """Drop the pending request and any result still in flight."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        for task in self._tasks:
            task.cancel()
        if not self._tasks:
            self._idle.set()

    async def wait(self) -> None:
        """Wait until no request is pending or running."""
        await self._idle.wait()

    def _start(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._timer = None
        self._generation += 1
        task = asyncio.ensure_future(self._run(self._generation, args, kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    async def _run(self, generation: int, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        try:
            result = await self._func(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                logger.debug("Discarding error from superseded run %d: %s", generation, e)
                return
            if self._on_error is not None:
                self._on_error(e)
            else:
                logger.error("Latest run failed: %s", e)
            return

        if generation != self._generation:
            logger.debug("Discarding result from superseded run %d", generation)
            return
        self._on_result(result)

    def _finished(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not self._tasks and self._timer is None:
            self._idle.set()
