"""
Connection-test configuration REST client.

Fetches the list of servers to test and the latency thresholds used to
classify them.  All HTTP work goes through a single ``aiohttp.ClientSession``
managed via async-context-manager protocol
(``async with ConnectionTestAPI(base) as api: ...``).

Both fetches fail open: a broken configuration endpoint yields an empty
server list or the previous thresholds, never an exception.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .constants import COMMON_HEADERS, SERVERS_PATH, THRESHOLDS_PATH
from .probe import destination_of
from .thresholds import Thresholds

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Server:
    """A server available for testing.  Identity is the URL."""

    url: str
    country: Optional[str] = None

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> Server:
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("Server entry has no URL")
        country = data.get("country")
        return cls(
            url=url,
            country=country.upper() if isinstance(country, str) and country else None,
        )

    # -- Derived values -----------------------------------------------------

    @property
    def destination(self) -> str:
        """Network destination (host:port) used for mutual exclusion."""
        return destination_of(self.url)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url}
        if self.country:
            data["country"] = self.country
        return data


def parse_server_map(data: Any) -> Dict[str, Server]:
    """Convert a decoded ``{name: {url, country?}}`` object into servers."""
    if not isinstance(data, dict):
        raise ValueError(f"Server list must be a JSON object, not {type(data).__name__}")

    servers: Dict[str, Server] = {}
    for name, entry in data.items():
        try:
            servers[str(name)] = Server.from_dict(entry if isinstance(entry, dict) else {})
        except ValueError as exc:
            logger.warning('Skipping server "%s": %s', name, exc)
    return servers


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class ConnectionTestAPI:
    """Async context-manager wrapping the connection-test configuration API."""

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self.servers: Dict[str, Server] = {}
        self.thresholds: Optional[Thresholds] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ConnectionTestAPI:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=COMMON_HEADERS)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "ConnectionTestAPI must be used as an async context manager "
                "(async with ConnectionTestAPI(base_url) as api: ...)"
            )
        return self._session

    async def _get_json(self, path: str) -> Any:
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(self.base_url + path, timeout=timeout) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    # -- Public methods -----------------------------------------------------

    async def fetch_servers(self) -> Dict[str, Server]:
        """Return the named servers to test, or ``{}`` if they can't be fetched."""
        try:
            data = await self._get_json(SERVERS_PATH)
            self.servers = parse_server_map(data)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Unable to retrieve server list: %s", exc)
            self.servers = {}

        logger.debug("Retrieved %d servers", len(self.servers))
        return self.servers

    async def fetch_thresholds(self, previous: Optional[Thresholds] = None) -> Thresholds:
        """Return the classification thresholds, falling back on any failure."""
        fallback = previous if previous is not None else Thresholds()
        try:
            data = await self._get_json(THRESHOLDS_PATH)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Unable to retrieve thresholds: %s", exc)
            self.thresholds = fallback
        else:
            self.thresholds = Thresholds.from_map_or_default(data, fallback)
        return self.thresholds
