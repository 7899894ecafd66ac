"""Long-lived owner of the enrichment pipeline."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pyrata._throttle import ThrottledExecutor
from pyrata.cache import MetadataStore
from pyrata.client import RataClient
from pyrata.config import RataConfig
from pyrata.models.metadata import EnrichedPosition
from pyrata.poller import PositionPoller
from pyrata.storage import JsonFileStorage, KeyValueStorage, MemoryStorage

_logger = logging.getLogger(__name__)


class TrainTracker:
    """Wire client, metadata store, rate-limited executor and poller together.

    Usage::

        async with TrainTracker(RataConfig.from_env()) as tracker:
            async for positions in tracker.updates():
                ...

    Leaving the context stops the poll loop and the rate window timer and
    closes the client if the tracker created it.  Metadata fetches already
    running are not cancelled.
    """

    def __init__(
        self,
        config: RataConfig | None = None,
        *,
        client: RataClient | None = None,
        storage: KeyValueStorage | None = None,
        on_update: Callable[[list[EnrichedPosition]], None] | None = None,
    ) -> None:
        self._config = config if config is not None else RataConfig()
        self._owns_client = client is None
        self._client = client if client is not None else RataClient(self._config)
        if storage is None:
            storage = JsonFileStorage(self._config.cache_dir) if self._config.cache_dir else MemoryStorage()
        self.store = MetadataStore(storage)
        self.executor = ThrottledExecutor(
            self._config.max_requests_per_window,
            self._config.rate_window,
            max_backlog=self._config.max_backlog,
        )
        self.poller = PositionPoller(
            self._client,
            self.store,
            self.executor,
            interval=self._config.poll_interval,
            on_update=on_update,
        )

    @property
    def client(self) -> RataClient:
        return self._client

    @property
    def latest(self) -> list[EnrichedPosition]:
        return self.poller.latest

    def updates(self) -> AsyncIterator[list[EnrichedPosition]]:
        return self.poller.updates()

    async def __aenter__(self) -> TrainTracker:
        if self._owns_client:
            await self._client.__aenter__()
        self.executor.start()
        self.poller.start()
        _logger.debug(
            "Tracking started (poll every %ss, %d metadata requests per %ss)",
            self._config.poll_interval,
            self._config.max_requests_per_window,
            self._config.rate_window,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.poller.stop()
        await self.executor.stop()
        if self._owns_client:
            await self._client.__aexit__(*exc)
