"""
Single timed round trips against a server.

Two transports are supported, selected by URL scheme::

    http(s)://host/path/   GET {url}api/ext/conntest/time?timestamp={ms}
                           -> {"serverTimestamp": ..., "clientTimestamp": ...}

    ws(s)://host:port/ws   Send  PING {ms}
                           Recv  PONG {server_timestamp}
                           (HELLO / YOURIP / CAPABILITIES lines are skipped)

A server lacking the timestamp endpoint still answers with a 404, which is
as good a timing signal as any -- but only when the response carries
permissive CORS headers.  A browser could not read it otherwise, so neither
do we.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import aiohttp
import websockets
import websockets.exceptions

from .constants import COMMON_HEADERS, TIME_PATH, WS_CONNECT_TIMEOUT
from .errors import ProbeError

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[float]]

_CORS_HEADER = "Access-Control-Allow-Origin"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def epoch_ms() -> int:
    return int(time.time() * 1000)


def destination_of(url: str) -> str:
    """Return the authority (host:port) of *url*, or *url* if it has none."""
    netloc = urlsplit(url).netloc
    return netloc.lower() if netloc else url


def time_url(url: str, time_path: str = TIME_PATH) -> str:
    """Build the timestamp endpoint URL for the server at *url*."""
    url = url.split("#", 1)[0]
    if not url.endswith("/"):
        url += "/"
    return url + time_path


def is_websocket_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() in ("ws", "wss")


# ---------------------------------------------------------------------------
# Wire model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimestampPair:
    """Server time when a request was serviced, plus the echoed client time."""

    server_timestamp: int
    client_timestamp: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> TimestampPair:
        if not isinstance(data, dict) or "serverTimestamp" not in data:
            raise ValueError("Response is not a timestamp pair")
        client = data.get("clientTimestamp")
        return cls(
            server_timestamp=int(data["serverTimestamp"]),
            client_timestamp=int(client) if client is not None else None,
        )

    def to_dict(self) -> dict:
        data = {"serverTimestamp": self.server_timestamp}
        if self.client_timestamp is not None:
            data["clientTimestamp"] = self.client_timestamp
        return data


# ---------------------------------------------------------------------------
# Timing service
# ---------------------------------------------------------------------------

class TimingService:
    """
    Opens probe sessions against servers.

    ``connect(url)`` yields a coroutine function; each call performs exactly
    one round trip and returns the elapsed time in milliseconds, raising
    ``ProbeError`` on any failure.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        time_path: str = TIME_PATH,
        ws_connect_timeout: float = WS_CONNECT_TIMEOUT,
    ) -> None:
        self._session = session
        self.time_path = time_path
        self.ws_connect_timeout = ws_connect_timeout

    @asynccontextmanager
    async def connect(self, url: str) -> AsyncIterator[Probe]:
        if is_websocket_url(url):
            async with self._websocket(url) as probe:
                yield probe
        else:
            target = time_url(url, self.time_path)

            async def probe() -> float:
                return await self._http_probe(url, target)

            yield probe

    # -- HTTP ---------------------------------------------------------------

    async def _http_probe(self, url: str, target: str) -> float:
        timestamp = epoch_ms()
        start = time.perf_counter()

        try:
            async with self._session.get(
                target,
                params={"timestamp": str(timestamp)},
                headers=COMMON_HEADERS,
            ) as resp:
                if resp.status == 404:
                    await resp.read()
                    elapsed = (time.perf_counter() - start) * 1000
                    if _CORS_HEADER not in resp.headers:
                        raise ProbeError(url, "404 response without CORS headers is unreadable")
                    logger.debug("%s lacks the timestamp endpoint; using 404 as ping", url)
                    return elapsed

                if resp.status >= 400:
                    raise ProbeError(url, f"HTTP {resp.status}")

                data = await resp.json(content_type=None)
                elapsed = (time.perf_counter() - start) * 1000

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise ProbeError(url, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise ProbeError(url, f"Malformed response: {exc}") from exc

        try:
            pair = TimestampPair.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise ProbeError(url, f"Malformed response: {exc}") from exc

        if pair.client_timestamp != timestamp:
            raise ProbeError(
                url,
                f"Echoed timestamp {pair.client_timestamp} does not match {timestamp}",
            )

        return elapsed

    # -- WebSocket ----------------------------------------------------------

    @asynccontextmanager
    async def _websocket(self, url: str) -> AsyncIterator[Probe]:
        try:
            ws = await websockets.connect(
                url,
                additional_headers=COMMON_HEADERS,
                ping_interval=None,
                close_timeout=2,
                open_timeout=self.ws_connect_timeout,
            )
        except (websockets.exceptions.WebSocketException, asyncio.TimeoutError, OSError) as exc:
            raise ProbeError(url, f"WebSocket connection failed: {exc}") from exc

        async def probe() -> float:
            timestamp = epoch_ms()
            start = time.perf_counter()
            try:
                await ws.send(f"PING {timestamp}")
                while True:
                    msg = await ws.recv()
                    if isinstance(msg, bytes):
                        msg = msg.decode("utf-8", "replace")
                    if msg.startswith("PONG"):
                        break
                    logger.debug("%s: ignoring %r", url, msg[:50])
            except (websockets.exceptions.WebSocketException, ConnectionError, OSError) as exc:
                raise ProbeError(url, str(exc)) from exc
            return (time.perf_counter() - start) * 1000

        try:
            yield probe
        finally:
            await ws.close()
