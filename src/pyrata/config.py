"""Client configuration for pyrata."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyrata._constants import (
    BASE_URL,
    DEFAULT_MAX_PER_WINDOW,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RATE_WINDOW,
    DEFAULT_REQUEST_TIMEOUT,
    DIGITRAFFIC_USER,
)
from pyrata.exceptions import RataConfigError


def _env_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip() or value.strip().lower() in {"none", "unbounded"}:
        return None
    return int(value)


@dataclasses.dataclass(frozen=True)
class RataConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Digitraffic rail API base URL.
    user_agent : str
        ``User-Agent`` header value.
    digitraffic_user : str
        Value of the ``Digitraffic-User`` header the service asks
        clients to send for identification.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.  Bounds
        hung metadata fetches so their in-flight marker is released.
    poll_interval : float
        Seconds between live position polls.
    max_requests_per_window : int
        Metadata requests admitted per rate window.
    rate_window : float
        Rate window length in seconds.
    max_backlog : int or None
        Cap on queued (not yet admitted) metadata requests.  When full the
        oldest queued request is dropped.  ``None`` means unbounded.
    cache_dir : str or None
        Directory for the durable per-day metadata cache.  ``None`` keeps
        the durable layer in memory only.
    """

    base_url: str = BASE_URL
    user_agent: str = "pyrata"
    digitraffic_user: str = DIGITRAFFIC_USER
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_requests_per_window: int = DEFAULT_MAX_PER_WINDOW
    rate_window: float = DEFAULT_RATE_WINDOW
    max_backlog: int | None = None
    cache_dir: str | None = None

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise RataConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.poll_interval <= 0:
            raise RataConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.max_requests_per_window < 1:
            raise RataConfigError(f"max_requests_per_window must be >= 1, got {self.max_requests_per_window}")
        if self.rate_window <= 0:
            raise RataConfigError(f"rate_window must be positive, got {self.rate_window}")
        if self.max_backlog is not None and self.max_backlog < 1:
            raise RataConfigError(f"max_backlog must be >= 1 or None, got {self.max_backlog}")

    @classmethod
    def from_env(cls, **overrides: Any) -> RataConfig:
        """Create configuration from environment variables.

        Reads optional ``RATA_*`` variables.  Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RataConfig
            Populated configuration.

        Raises
        ------
        RataConfigError
            If a numeric variable cannot be parsed or is out of range.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "RATA_BASE_URL": "base_url",
            "RATA_USER_AGENT": "user_agent",
            "RATA_DIGITRAFFIC_USER": "digitraffic_user",
            "RATA_CACHE_DIR": "cache_dir",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, Any]] = {
            "RATA_REQUEST_TIMEOUT": ("request_timeout", float),
            "RATA_POLL_INTERVAL": ("poll_interval", float),
            "RATA_MAX_REQUESTS_PER_WINDOW": ("max_requests_per_window", int),
            "RATA_RATE_WINDOW": ("rate_window", float),
            "RATA_MAX_BACKLOG": ("max_backlog", _env_optional_int),
        }
        for env_key, (field_name, convert) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise RataConfigError(f"Invalid value for {env_key}: {val!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
