"""Internal constants shared across the library."""

from __future__ import annotations

from datetime import UTC, date, datetime

BASE_URL = "https://rata.digitraffic.fi/api/v1"
DIGITRAFFIC_USER = "pyrata"

#: Upstream metadata quota: requests admitted per rate window.
DEFAULT_MAX_PER_WINDOW = 50
#: Rate window length in seconds.
DEFAULT_RATE_WINDOW = 60.0
#: Live position refresh cadence in seconds.
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0

HTTP_TOO_MANY_REQUESTS = 429


def service_day() -> date:
    """Current calendar day (UTC), the scope of upstream train numbers."""
    return datetime.now(UTC).date()
