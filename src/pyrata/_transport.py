"""HTTP transport for the Digitraffic rail API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from pyrata._constants import HTTP_TOO_MANY_REQUESTS
from pyrata.config import RataConfig
from pyrata.exceptions import RataRateLimitError, RataTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str) -> Any:
        ...


class HttpTransport:
    """JSON-over-HTTP transport sharing one ``aiohttp.ClientSession``."""

    def __init__(self, config: RataConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        self._headers: dict[str, str] = {
            "accept": "application/json",
            "accept-encoding": "gzip",
            "user-agent": config.user_agent,
            "digitraffic-user": config.digitraffic_user,
        }

    async def get_json(self, endpoint: str) -> Any:
        """GET *endpoint* (relative to ``base_url``) and decode the JSON body.

        Raises
        ------
        RataRateLimitError
            The service answered HTTP 429.
        RataTransportError
            Network failure, timeout, other non-200 status or invalid JSON.
        """
        url = f"{self._config.base_url}{endpoint}"
        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=self._headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status == HTTP_TOO_MANY_REQUESTS:
                    raise RataRateLimitError(
                        f"Rate limited on {endpoint}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
                if resp.status != 200:
                    raise RataTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except RataTransportError:
            raise
        except TimeoutError as exc:
            raise RataTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise RataTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise RataTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
