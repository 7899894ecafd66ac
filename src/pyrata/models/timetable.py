"""Train timetable models (``/trains/{date}/{number}``)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import AliasChoices, Field

from pyrata.models._base import RataBaseModel, RataEnum


class RowType(RataEnum):
    """Timetable row kind."""

    DEPARTURE = "DEPARTURE"
    ARRIVAL = "ARRIVAL"
    UNKNOWN = "UNKNOWN"


class TimeTableRow(RataBaseModel):
    """One scheduled arrival or departure at a station."""

    station_short_code: str | None = None
    station_uic_code: int | None = Field(
        default=None,
        validation_alias=AliasChoices("stationUICCode", "stationUicCode", "station_uic_code"),
    )
    country_code: str | None = None
    type: RowType = RowType.UNKNOWN
    train_stopping: bool = True
    commercial_stop: bool | None = None
    cancelled: bool = False
    scheduled_time: datetime | None = None
    actual_time: datetime | None = None


class Train(RataBaseModel):
    """A train's schedule for one service day."""

    train_number: int
    departure_date: date | None = None
    operator_short_code: str | None = None
    train_type: str | None = None
    train_category: str | None = None
    commuter_line_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("commuterLineID", "commuterLineId", "commuter_line_id"),
    )
    cancelled: bool = False
    time_table_rows: list[TimeTableRow] = Field(default_factory=list)

    @property
    def origin(self) -> str | None:
        """Station of the first scheduled departure."""
        return next(
            (row.station_short_code for row in self.time_table_rows if row.type is RowType.DEPARTURE),
            None,
        )

    @property
    def destination(self) -> str | None:
        """Station of the last scheduled arrival (scanned from the end)."""
        return next(
            (row.station_short_code for row in reversed(self.time_table_rows) if row.type is RowType.ARRIVAL),
            None,
        )
