"""High-level async client for the Digitraffic rail API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import aiohttp

from pyrata._api import trains as _trains_api
from pyrata._transport import HttpTransport, Transport
from pyrata.config import RataConfig
from pyrata.exceptions import RataError
from pyrata.models.position import TrainLocation
from pyrata.models.station import Station
from pyrata.models.timetable import Train

_logger = logging.getLogger(__name__)


class RataClient:
    """Async client for the Digitraffic rail API.

    Usage::

        async with RataClient(config) as client:
            locations = await client.get_latest_locations()

    A pre-built *transport* may be passed instead of an HTTP session,
    which is how tests run the client without a network.
    """

    def __init__(
        self,
        config: RataConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config if config is not None else RataConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> RataConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RataClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise RataError("Client not initialized. Use 'async with RataClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Read endpoints
    # ------------------------------------------------------------------

    async def get_latest_locations(self) -> list[TrainLocation]:
        """Fetch the latest position of every train currently reporting."""
        return await _trains_api.fetch_latest_locations(self._require_transport())

    async def get_train(self, train_number: int | str, departure_date: date) -> Train | None:
        """Fetch one train's timetable for *departure_date*.

        Raises
        ------
        RataRateLimitError
            The metadata service's quota is exhausted.
        """
        return await _trains_api.fetch_train(self._require_transport(), train_number, departure_date)

    async def get_stations(self) -> dict[str, Station]:
        """Fetch station reference data keyed by station short code."""
        stations = await _trains_api.fetch_stations(self._require_transport())
        _logger.debug("Loaded %d stations", len(stations))
        return stations
