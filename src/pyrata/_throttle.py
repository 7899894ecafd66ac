"""Fixed-window rate-limited task runner.

Admits at most ``max_per_window`` queued tasks per window, in submission
order.  Admitted tasks are started without being awaited, so the number
of tasks running at once is not bounded; only the admission rate is.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pyrata._constants import DEFAULT_MAX_PER_WINDOW, DEFAULT_RATE_WINDOW

_logger = logging.getLogger(__name__)

QueueTask = Callable[[], Awaitable[Any]]
"""Zero-argument callable returning an awaitable unit of work."""


class ThrottledExecutor:
    """Run submitted tasks under a fixed-window admission quota.

    Usage::

        executor = ThrottledExecutor(max_per_window=50, window=60.0)
        executor.start()
        executor.submit(lambda: fetch(...))
        ...
        await executor.stop()

    Parameters
    ----------
    max_per_window : int
        Tasks admitted per window.
    window : float
        Window length in seconds.  The admission counter is reset on a
        fixed timer regardless of task activity.
    max_backlog : int or None
        Maximum number of queued (not yet admitted) tasks.  When exceeded
        the oldest queued task is dropped.  ``None`` means unbounded.
    """

    def __init__(
        self,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
        window: float = DEFAULT_RATE_WINDOW,
        *,
        max_backlog: int | None = None,
    ) -> None:
        if max_per_window < 1:
            raise ValueError(f"max_per_window must be >= 1, got {max_per_window}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        self._max_per_window = max_per_window
        self._window = window
        self._max_backlog = max_backlog
        self._queue: collections.deque[tuple[QueueTask, Callable[[], None] | None]] = collections.deque()
        self._admitted = 0
        self._running: set[asyncio.Task[Any]] = set()
        self._timer: asyncio.Task[None] | None = None

    async def __aenter__(self) -> ThrottledExecutor:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def max_per_window(self) -> int:
        return self._max_per_window

    @property
    def window(self) -> float:
        return self._window

    @property
    def pending(self) -> int:
        """Tasks queued and waiting for admission."""
        return len(self._queue)

    @property
    def admitted_in_window(self) -> int:
        return self._admitted

    @property
    def in_flight(self) -> int:
        """Admitted tasks that have not finished yet."""
        return len(self._running)

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the window timer.  Must be called from a running event loop."""
        if self.is_running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._window_loop(), name="pyrata-rate-window")

    async def stop(self) -> None:
        """Stop the window timer.

        Queued tasks stay queued; already admitted tasks keep running.
        """
        timer = self._timer
        self._timer = None
        if timer is None:
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer

    def submit(self, task: QueueTask, *, on_drop: Callable[[], None] | None = None) -> None:
        """Queue *task* and admit it immediately if the window has quota left.

        *on_drop* is called if the task is later discarded from a full
        backlog without ever running.
        """
        self._queue.append((task, on_drop))
        if self._max_backlog is not None and len(self._queue) > self._max_backlog:
            _dropped, dropped_cb = self._queue.popleft()
            _logger.warning("Backlog full (%d queued), dropped oldest task", self._max_backlog)
            if dropped_cb is not None:
                dropped_cb()
        self._drain()

    def reset_window(self) -> None:
        """Start a new window: clear the counter and admit from the backlog."""
        self._admitted = 0
        self._drain()

    async def wait_idle(self) -> None:
        """Wait for the currently admitted tasks to finish."""
        while self._running:
            await asyncio.wait(set(self._running))

    def _drain(self) -> None:
        while self._admitted < self._max_per_window and self._queue:
            task, _on_drop = self._queue.popleft()
            self._admitted += 1
            self._launch(task)

    def _launch(self, task: QueueTask) -> None:
        try:
            running = asyncio.ensure_future(task())
        except Exception:
            _logger.error("Queued task failed to start", exc_info=True)
            return
        self._running.add(running)
        running.add_done_callback(self._on_done)
        _logger.debug(
            "Admitted task (%d/%d this window, %d queued)",
            self._admitted,
            self._max_per_window,
            len(self._queue),
        )

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Queued task raised", exc_info=exc)

    async def _window_loop(self) -> None:
        while True:
            await asyncio.sleep(self._window)
            self.reset_window()
