"""Per-service-day train metadata cache with a durable backing layer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from pydantic import ValidationError

from pyrata._constants import service_day
from pyrata.models.metadata import TrainMetadata
from pyrata.storage import KeyValueStorage, MemoryStorage

_logger = logging.getLogger(__name__)


def day_key(identifier: int | str, day: date) -> str:
    """Cache key scoping a train number to one service day."""
    return f"{identifier}-{day.isoformat()}"


class MetadataStore:
    """Map train number (per service day) to :class:`TrainMetadata`.

    Lookups check memory first and fall back to the durable layer once per
    key; a hit there is copied into memory and memory is authoritative
    from then on.  Entries are never evicted or overwritten.

    Durable-layer failures are logged and the store keeps working from
    memory alone; they are never raised to the caller.

    Parameters
    ----------
    storage : KeyValueStorage or None
        Durable layer.  Defaults to a :class:`MemoryStorage`.
    today : callable
        Returns the current service day.  Evaluated on every call without
        an explicit ``day``, so keys roll over at midnight.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        *,
        today: Callable[[], date] = service_day,
    ) -> None:
        self._storage: KeyValueStorage = storage if storage is not None else MemoryStorage()
        self._today = today
        self._memory: dict[str, TrainMetadata] = {}
        self._durable_checked: set[str] = set()

    def __len__(self) -> int:
        return len(self._memory)

    def today(self) -> date:
        return self._today()

    def key(self, identifier: int | str, day: date | None = None) -> str:
        return day_key(identifier, day if day is not None else self._today())

    def get(self, identifier: int | str, *, day: date | None = None) -> TrainMetadata | None:
        key = self.key(identifier, day)
        cached = self._memory.get(key)
        if cached is not None:
            return cached
        if key in self._durable_checked:
            return None
        self._durable_checked.add(key)
        loaded = self._load(key)
        if loaded is not None:
            self._memory[key] = loaded
        return loaded

    def has(self, identifier: int | str, *, day: date | None = None) -> bool:
        return self.get(identifier, day=day) is not None

    def set(self, identifier: int | str, metadata: TrainMetadata, *, day: date | None = None) -> None:
        """Store metadata for *identifier*; ignored if the key is already populated."""
        key = self.key(identifier, day)
        existing = self._memory.get(key)
        if existing is not None:
            if existing != metadata:
                _logger.debug("Keeping existing metadata for %s", key)
            return
        self._memory[key] = metadata
        self._durable_checked.add(key)
        self._save(key, metadata)

    def _load(self, key: str) -> TrainMetadata | None:
        try:
            raw = self._storage.get_item(key)
        except Exception:
            _logger.debug("Durable read failed for %s, using memory only", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return TrainMetadata.model_validate_json(raw)
        except ValidationError:
            _logger.debug("Discarding unreadable durable entry %s", key, exc_info=True)
            return None

    def _save(self, key: str, metadata: TrainMetadata) -> None:
        try:
            self._storage.set_item(key, metadata.model_dump_json())
        except Exception:
            _logger.debug("Durable write failed for %s, using memory only", key, exc_info=True)
