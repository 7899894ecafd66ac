"""Live position polling with rate-limited metadata backfill."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import AsyncIterator, Callable
from datetime import date
from typing import Protocol

from pyrata._constants import DEFAULT_POLL_INTERVAL
from pyrata._throttle import ThrottledExecutor
from pyrata.cache import MetadataStore
from pyrata.exceptions import RataError, RataRateLimitError
from pyrata.models.metadata import EnrichedPosition, TrainMetadata
from pyrata.models.position import TrainLocation
from pyrata.models.timetable import Train

_logger = logging.getLogger(__name__)


class TrainSource(Protocol):
    """The two upstream reads the poller depends on (see `RataClient`)."""

    async def get_latest_locations(self) -> list[TrainLocation]:
        ...

    async def get_train(self, train_number: int | str, departure_date: date) -> Train | None:
        ...


class PositionPoller:
    """Poll live train positions and overlay cached origin/destination.

    Every tick fetches the latest positions, queues one metadata fetch on
    *executor* for each train whose metadata is neither cached nor already
    being fetched, and emits the positions merged with whatever the store
    holds right now.  A fetch that completes during a tick shows up on a
    later one.

    The in-flight marker for a train is released when its fetch finishes,
    whatever the outcome, or when the executor drops the queued fetch.

    Parameters
    ----------
    source : TrainSource
        Upstream client.
    store : MetadataStore
        Metadata cache.
    executor : ThrottledExecutor
        Rate-limited runner for metadata fetches.
    interval : float
        Seconds between tick starts.  Ticks keep a fixed schedule like
        a repeating timer; a poll slower than the interval is followed
        immediately by the next one.
    on_update : callable or None
        Called with each tick's list of enriched positions.
    """

    def __init__(
        self,
        source: TrainSource,
        store: MetadataStore,
        executor: ThrottledExecutor,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Callable[[list[EnrichedPosition]], None] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._executor = executor
        self._interval = interval
        self._on_update = on_update
        self._in_flight: set[str] = set()
        self._latest: list[EnrichedPosition] = []
        self._subscribers: set[asyncio.Queue[list[EnrichedPosition]]] = set()
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def latest(self) -> list[EnrichedPosition]:
        """Positions emitted by the most recent successful tick."""
        return list(self._latest)

    @property
    def in_flight(self) -> frozenset[str]:
        """Cache keys with a metadata fetch queued or running."""
        return frozenset(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start polling; the first tick runs immediately."""
        if self.is_running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._run(), name="pyrata-position-poll")

    async def stop(self) -> None:
        """Stop polling.  Metadata fetches already started are left to finish."""
        task = self._loop_task
        self._loop_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        # Fixed schedule: poll duration does not delay later ticks.
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            try:
                await self.poll_once()
            except RataRateLimitError:
                _logger.warning("Position feed rate limit hit")
            except RataError as exc:
                _logger.error("Position poll failed: %s", exc)
            except Exception:
                _logger.exception("Unexpected error during position poll")
            deadline += self._interval
            delay = deadline - loop.time()
            if delay < 0:
                # Overran a whole interval; resume the schedule from now.
                deadline = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> list[EnrichedPosition]:
        """Run one tick and return its enriched positions.

        Raises
        ------
        RataError
            The position feed could not be fetched.
        """
        locations = await self._source.get_latest_locations()
        day = self._store.today()
        enriched: list[EnrichedPosition] = []
        for location in locations:
            self._schedule_backfill(location.train_number, day)
            metadata = self._store.get(location.train_number, day=day)
            enriched.append(EnrichedPosition.merge(location, metadata))
        self._latest = enriched
        self._publish(enriched)
        return enriched

    def updates(self) -> AsyncIterator[list[EnrichedPosition]]:
        """Yield each tick's positions as they are produced.

        The subscription is registered when this method is called, so a
        tick that runs before the first ``__anext__`` is still delivered.
        A consumer that falls behind only sees the most recent tick.
        """
        queue: asyncio.Queue[list[EnrichedPosition]] = asyncio.Queue(maxsize=1)
        self._subscribers.add(queue)
        return self._iter_updates(queue)

    async def _iter_updates(self, queue: asyncio.Queue[list[EnrichedPosition]]) -> AsyncIterator[list[EnrichedPosition]]:
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

    def _publish(self, enriched: list[EnrichedPosition]) -> None:
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(list(enriched))
        if self._on_update is not None:
            try:
                self._on_update(list(enriched))
            except Exception:
                _logger.warning("on_update callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Metadata backfill
    # ------------------------------------------------------------------

    def _schedule_backfill(self, train_number: int, day: date) -> None:
        key = self._store.key(train_number, day)
        if key in self._in_flight or self._store.has(train_number, day=day):
            return
        self._in_flight.add(key)
        self._executor.submit(
            functools.partial(self._backfill, train_number, day, key),
            on_drop=functools.partial(self._in_flight.discard, key),
        )

    async def _backfill(self, train_number: int, day: date, key: str) -> None:
        try:
            train = await self._source.get_train(train_number, day)
            metadata = TrainMetadata.from_train(train)
            self._store.set(train_number, metadata, day=day)
            _logger.debug("Resolved %s: %s -> %s", key, metadata.origin, metadata.dest)
        except RataRateLimitError:
            _logger.warning("Digitraffic rate limit hit fetching train %s", train_number)
        except Exception:
            _logger.exception("Metadata fetch failed for train %s", train_number)
        finally:
            self._in_flight.discard(key)
