"""Station reference data (``/metadata/stations``)."""

from __future__ import annotations

import re
from collections.abc import Mapping

from pydantic import AliasChoices, Field

from pyrata.models._base import RataBaseModel

_ASEMA_SUFFIX = re.compile(r" ?asema$", re.IGNORECASE)


class Station(RataBaseModel):
    """A station or stop on the rail network."""

    station_short_code: str
    station_name: str = ""
    station_uic_code: int | None = Field(
        default=None,
        validation_alias=AliasChoices("stationUICCode", "stationUicCode", "station_uic_code"),
    )
    country_code: str | None = None
    passenger_traffic: bool = False
    type: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def display_name(self) -> str:
        """Station name without the redundant ``asema`` ("station") suffix."""
        return _ASEMA_SUFFIX.sub("", self.station_name)


def station_label(stations: Mapping[str, Station], code: str | None) -> str:
    """Human-readable name for *code*, falling back to the code itself."""
    if code is None:
        return ""
    station = stations.get(code)
    if station is None or not station.station_name:
        return code
    return station.display_name
