"""Data models for Digitraffic rail API responses."""

from pyrata.models._base import RataBaseModel, RataEnum
from pyrata.models.metadata import EnrichedPosition, TrainMetadata
from pyrata.models.position import GeoPoint, TrainLocation
from pyrata.models.station import Station, station_label
from pyrata.models.timetable import RowType, TimeTableRow, Train

__all__ = [
    "EnrichedPosition",
    "GeoPoint",
    "RataBaseModel",
    "RataEnum",
    "RowType",
    "Station",
    "TimeTableRow",
    "Train",
    "TrainLocation",
    "TrainMetadata",
    "station_label",
]
