"""Custom exception hierarchy for pyrata."""

from __future__ import annotations


class RataError(Exception):
    """Base exception for all pyrata errors."""


class RataConfigError(RataError):
    """Invalid or missing configuration."""


class RataTransportError(RataError):
    """HTTP-level failure (network, timeout, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RataRateLimitError(RataTransportError):
    """Upstream quota exhausted (HTTP 429).

    Expected during bursts; callers drop the request instead of retrying.
    """


class RataApiError(RataError):
    """Response payload did not have the expected shape."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)
