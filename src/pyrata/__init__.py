"""pyrata - Async Python client for live Finnish rail traffic with metadata enrichment."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyrata")
except PackageNotFoundError:
    __version__ = "0+local"
from pyrata._throttle import ThrottledExecutor
from pyrata.cache import MetadataStore, day_key
from pyrata.client import RataClient
from pyrata.config import RataConfig
from pyrata.exceptions import (
    RataApiError,
    RataConfigError,
    RataError,
    RataRateLimitError,
    RataTransportError,
)
from pyrata.models import (
    EnrichedPosition,
    GeoPoint,
    RowType,
    Station,
    TimeTableRow,
    Train,
    TrainLocation,
    TrainMetadata,
    station_label,
)
from pyrata.poller import PositionPoller
from pyrata.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from pyrata.tracker import TrainTracker

__all__ = [
    "__version__",
    "EnrichedPosition",
    "GeoPoint",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "MetadataStore",
    "PositionPoller",
    "RataApiError",
    "RataClient",
    "RataConfig",
    "RataConfigError",
    "RataError",
    "RataRateLimitError",
    "RataTransportError",
    "RowType",
    "Station",
    "ThrottledExecutor",
    "TimeTableRow",
    "Train",
    "TrainLocation",
    "TrainMetadata",
    "TrainTracker",
    "day_key",
    "station_label",
]
