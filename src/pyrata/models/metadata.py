"""Trip metadata and enriched position models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyrata.models.position import TrainLocation
from pyrata.models.timetable import Train


class TrainMetadata(BaseModel):
    """Origin and destination station codes for one train and service day.

    ``None`` means "not resolved", never "resolved to nothing".  Once
    stored, metadata for a train/day is never changed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    origin: str | None = None
    dest: str | None = None

    @classmethod
    def from_train(cls, train: Train | None) -> TrainMetadata:
        """Extract metadata from a timetable; a missing train yields empty metadata."""
        if train is None:
            return cls()
        return cls(origin=train.origin, dest=train.destination)


class EnrichedPosition(TrainLocation):
    """A :class:`TrainLocation` with cached metadata overlaid.

    Recomputed every poll tick and never stored.
    """

    origin: str | None = None
    dest: str | None = None

    @classmethod
    def merge(cls, location: TrainLocation, metadata: TrainMetadata | None) -> EnrichedPosition:
        fields = dict(location)
        if metadata is not None:
            fields.update(origin=metadata.origin, dest=metadata.dest)
        return cls(**fields)
