"""Rail traffic endpoints.

Endpoints:
  - /train-locations/latest (live positions, polled)
  - /trains/{departure_date}/{train_number} (timetable, rate limited)
  - /metadata/stations (reference data, fetched once)
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, ValidationError

from pyrata._transport import Transport
from pyrata.exceptions import RataApiError
from pyrata.models.position import TrainLocation
from pyrata.models.station import Station
from pyrata.models.timetable import Train

_logger = logging.getLogger(__name__)

LATEST_LOCATIONS_ENDPOINT = "/train-locations/latest"
STATIONS_ENDPOINT = "/metadata/stations"


def train_endpoint(train_number: int | str, departure_date: date) -> str:
    return f"/trains/{departure_date.isoformat()}/{train_number}"


def _require_list(payload: Any, endpoint: str) -> list[Any]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise RataApiError(f"Expected a JSON array from {endpoint}, got {type(payload).__name__}", endpoint=endpoint)
    return payload


def _parse_items(model: type[BaseModel], items: list[Any], endpoint: str) -> list[Any]:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        raise RataApiError(f"Unexpected {model.__name__} payload from {endpoint}: {exc}", endpoint=endpoint) from exc


async def fetch_latest_locations(transport: Transport) -> list[TrainLocation]:
    """Fetch the latest known position of every running train."""
    payload = await transport.get_json(LATEST_LOCATIONS_ENDPOINT)
    items = _require_list(payload, LATEST_LOCATIONS_ENDPOINT)
    return _parse_items(TrainLocation, items, LATEST_LOCATIONS_ENDPOINT)


async def fetch_train(transport: Transport, train_number: int | str, departure_date: date) -> Train | None:
    """Fetch one train's timetable.

    The endpoint answers with an array holding zero or one train;
    ``None`` is returned when the train is unknown for that day.
    """
    endpoint = train_endpoint(train_number, departure_date)
    payload = await transport.get_json(endpoint)
    items = _require_list(payload, endpoint)
    if not items:
        _logger.debug("No timetable for train %s on %s", train_number, departure_date)
        return None
    trains: list[Train] = _parse_items(Train, items[:1], endpoint)
    return trains[0]


async def fetch_stations(transport: Transport) -> dict[str, Station]:
    """Fetch station reference data keyed by station short code."""
    payload = await transport.get_json(STATIONS_ENDPOINT)
    items = _require_list(payload, STATIONS_ENDPOINT)
    stations: list[Station] = _parse_items(Station, items, STATIONS_ENDPOINT)
    return {station.station_short_code: station for station in stations}
