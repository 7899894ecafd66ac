"""Live train location models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pyrata._normalize import safe_float, safe_int
from pyrata.models._base import RataBaseModel


class GeoPoint(RataBaseModel):
    """GeoJSON point; ``coordinates`` are ``[longitude, latitude]``."""

    type: str = "Point"
    coordinates: list[float] = Field(default_factory=list)

    @field_validator("coordinates")
    @classmethod
    def _require_pair(cls, value: list[float]) -> list[float]:
        if len(value) < 2:
            raise ValueError("coordinates must contain longitude and latitude")
        return value

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class TrainLocation(RataBaseModel):
    """Latest reported position of one train.

    Mapped from ``/train-locations/latest``.  The library never mutates
    a location; enrichment produces an :class:`EnrichedPosition` copy.
    """

    train_number: int
    """Train number, stable for one trip within a service day."""
    departure_date: date | None = None
    """Service day the train's schedule belongs to."""
    timestamp: datetime | None = None
    """When the position was measured."""
    location: GeoPoint | None = None
    speed: float | None = None
    """Speed in km/h."""
    accuracy: int | None = Field(default=None, validation_alias=AliasChoices("accuracy"))
    """Position accuracy in metres, when reported."""

    @field_validator("speed", mode="before")
    @classmethod
    def _coerce_speed(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> int | None:
        return safe_int(value)

    @property
    def latitude(self) -> float | None:
        return self.location.latitude if self.location is not None else None

    @property
    def longitude(self) -> float | None:
        return self.location.longitude if self.location is not None else None
